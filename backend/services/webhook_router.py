"""Dispatch of parsed Paddle events to synchronizer handlers."""

from enum import Enum

from adapters.payments import PaddleWebhookEvent, WebhookEventType
from services.subscription_sync import SubscriptionSynchronizer, SyncResult


class EventRoute(str, Enum):
    """Handler an event type is routed to."""

    SUBSCRIPTION = "subscription"
    TRANSACTION = "transaction"
    CANCELLATION = "cancellation"
    ACKNOWLEDGE = "acknowledge"


EVENT_ROUTES: dict[str, EventRoute] = {
    WebhookEventType.SUBSCRIPTION_CREATED: EventRoute.SUBSCRIPTION,
    WebhookEventType.SUBSCRIPTION_UPDATED: EventRoute.SUBSCRIPTION,
    WebhookEventType.TRANSACTION_COMPLETED: EventRoute.TRANSACTION,
    WebhookEventType.SUBSCRIPTION_CANCELED: EventRoute.CANCELLATION,
}


def route_for(event_type: str) -> EventRoute:
    """Return the route for an event type; unknown types are only acknowledged."""
    return EVENT_ROUTES.get(event_type, EventRoute.ACKNOWLEDGE)


async def dispatch_event(
    event: PaddleWebhookEvent,
    synchronizer: SubscriptionSynchronizer,
) -> SyncResult:
    """Run the handler for ``event`` and return its result."""
    route = route_for(event.event_type)
    synchronizer.log.debug("Routing webhook event", event_type=event.event_type, route=route.value)

    if route is EventRoute.SUBSCRIPTION:
        return await synchronizer.sync_subscription(event)
    if route is EventRoute.TRANSACTION:
        return await synchronizer.sync_transaction(event)
    if route is EventRoute.CANCELLATION:
        return await synchronizer.sync_cancellation(event)

    synchronizer.log.info("Unhandled event type", event_type=event.event_type)
    return SyncResult(True, f"Event type {event.event_type} acknowledged but not processed")
