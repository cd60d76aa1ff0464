"""Payment provider adapters for webhook event parsing."""

from .paddle_events import (
    BillingEventData,
    BillingPeriod,
    CustomData,
    EventData,
    EventItem,
    PaddleWebhookEvent,
    SubscriptionEventData,
    TransactionEventData,
    WebhookEventType,
)

__all__ = [
    "BillingEventData",
    "BillingPeriod",
    "CustomData",
    "EventData",
    "EventItem",
    "PaddleWebhookEvent",
    "SubscriptionEventData",
    "TransactionEventData",
    "WebhookEventType",
]
