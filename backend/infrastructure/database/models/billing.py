"""
Billing models synchronized from Paddle webhooks.

``profiles`` and ``user_subscriptions`` are written by the synchronizer,
``subscription_plans`` is maintained elsewhere and only read here.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class SubscriptionStatus(str, Enum):
    """Subscription statuses written by the synchronizer."""

    ACTIVE = "active"
    CANCELED = "canceled"


class Profile(Base, TimestampMixin):
    """Per-user billing profile, keyed by the internal user id."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    subscription_status: Mapped[str] = mapped_column(
        String(50),
        default=SubscriptionStatus.ACTIVE.value,
        nullable=False,
    )
    subscription_plan: Mapped[str] = mapped_column(String(100), default="unknown", nullable=False)
    paddle_customer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Profile {self.user_id} plan={self.subscription_plan}>"


class SubscriptionPlan(Base, TimestampMixin):
    """A sellable plan, matched to Paddle by product id."""

    __tablename__ = "subscription_plans"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    paddle_product_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    interval_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<SubscriptionPlan {self.name} ({self.paddle_product_id})>"


class UserSubscription(Base, TimestampMixin):
    """A user's Paddle subscription, keyed by the Paddle subscription id."""

    __tablename__ = "user_subscriptions"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    plan_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("subscription_plans.id", ondelete="RESTRICT"),
        nullable=False,
    )
    paddle_subscription_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    current_period_start: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    current_period_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<UserSubscription {self.paddle_subscription_id} status={self.status}>"
