"""
SQLAlchemy database models.
"""

from .base import Base, TimestampMixin
from .billing import Profile, SubscriptionPlan, SubscriptionStatus, UserSubscription
from .webhook_log import WebhookLog, WebhookLogStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "Profile",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "UserSubscription",
    "WebhookLog",
    "WebhookLogStatus",
]
