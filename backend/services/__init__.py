"""
Service layer for webhook processing.
"""

from services.subscription_sync import SubscriptionSynchronizer, SyncResult
from services.webhook_audit import record_webhook_event
from services.webhook_logger import LogHistory, WebhookLogger, get_log_history
from services.webhook_router import EventRoute, dispatch_event, route_for

__all__ = [
    "SubscriptionSynchronizer",
    "SyncResult",
    "record_webhook_event",
    "LogHistory",
    "WebhookLogger",
    "get_log_history",
    "EventRoute",
    "dispatch_event",
    "route_for",
]
