"""
Profile and subscription synchronization for Paddle events.

Every write is committed on its own and keyed by a unique column, so a
partially processed event is healed by Paddle redelivering it. Nothing is
rolled back across steps.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.payments import (
    CustomData,
    PaddleWebhookEvent,
    SubscriptionEventData,
    TransactionEventData,
)
from core.exceptions import PlanLookupError, StoreError
from infrastructure.database import upsert
from infrastructure.database.models import (
    Profile,
    SubscriptionPlan,
    SubscriptionStatus,
    UserSubscription,
)
from services.webhook_logger import WebhookLogger

T = TypeVar("T")

DEFAULT_EMAIL = "unknown@example.com"
DEFAULT_FULL_NAME = "Unknown User"
DEFAULT_PLAN = "unknown"
FREE_PLAN = "free"


@dataclass(frozen=True)
class SyncResult:
    """Outcome of handling one event."""

    success: bool
    message: str


def _store_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class SubscriptionSynchronizer:
    """Applies Paddle events to the profiles and user_subscriptions tables."""

    def __init__(self, db: AsyncSession, log: WebhookLogger):
        self.db = db
        self.log = log

    async def _store_call(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run one store call, converting driver failures to StoreError."""
        try:
            return await call()
        except SQLAlchemyError as e:
            await self.db.rollback()
            message = _store_message(e)
            self.log.error("Store call failed", operation=operation, error=message)
            raise StoreError(operation, message) from e

    # ------------------------------------------------------------------
    # Store operations
    # ------------------------------------------------------------------

    async def validate_user(self, user_id: str) -> Optional[Profile]:
        """
        Look up the profile for ``user_id``.

        A missing profile is not an error; it is created by the first upsert.
        """

        async def _lookup() -> Optional[Profile]:
            result = await self.db.execute(select(Profile).where(Profile.user_id == user_id))
            return result.scalar_one_or_none()

        profile = await self._store_call("validate_user", _lookup)
        if profile is None:
            self.log.info("User profile not found, will be created", user_id=user_id)
        return profile

    async def find_plan(self, product_id: str) -> SubscriptionPlan:
        """Return the plan sold under ``product_id`` or raise PlanLookupError."""

        async def _lookup() -> Optional[SubscriptionPlan]:
            result = await self.db.execute(
                select(SubscriptionPlan).where(SubscriptionPlan.paddle_product_id == product_id)
            )
            return result.scalar_one_or_none()

        plan = await self._store_call("find_plan", _lookup)
        if plan is None:
            raise PlanLookupError(product_id)
        return plan

    async def upsert_profile(
        self,
        user_id: str,
        custom_data: CustomData,
        status: Optional[str],
        plan_name: Optional[str],
        customer_id: Optional[str],
    ) -> None:
        """Update the profile matched by user_id, inserting it when none matched."""
        values = {
            "email": custom_data.email or DEFAULT_EMAIL,
            "full_name": custom_data.full_name or DEFAULT_FULL_NAME,
            "subscription_status": status or SubscriptionStatus.ACTIVE.value,
            "subscription_plan": plan_name or DEFAULT_PLAN,
            "paddle_customer_id": customer_id,
        }

        async def _write() -> None:
            result = await self.db.execute(
                update(Profile).where(Profile.user_id == user_id).values(**values)
            )
            if result.rowcount == 0:
                self.db.add(Profile(user_id=user_id, **values))
                self.log.info("Creating new user profile", user_id=user_id)
            await self.db.commit()

        await self._store_call("upsert_profile", _write)
        self.log.info("User profile synchronized", user_id=user_id, plan=values["subscription_plan"])

    async def upsert_subscription(
        self,
        user_id: str,
        plan_id: str,
        data: SubscriptionEventData,
    ) -> None:
        """Insert or update the subscription row keyed by the Paddle subscription id."""
        values = {
            "user_id": user_id,
            "plan_id": plan_id,
            "paddle_subscription_id": data.id,
            "status": data.status or SubscriptionStatus.ACTIVE.value,
            "current_period_start": data.period_start,
            "current_period_end": data.period_end,
        }

        async def _write() -> None:
            await upsert(self.db, UserSubscription, values, ["paddle_subscription_id"])
            await self.db.commit()

        await self._store_call("upsert_subscription", _write)
        self.log.info("Subscription upserted", paddle_subscription_id=data.id, user_id=user_id)

    async def mark_subscription_canceled(self, data: SubscriptionEventData) -> int:
        """Update an existing subscription row; never inserts. Returns rows matched."""
        values = {
            "status": data.status or SubscriptionStatus.CANCELED.value,
            "current_period_end": data.period_end or datetime.now(timezone.utc),
        }

        async def _write() -> int:
            result = await self.db.execute(
                update(UserSubscription)
                .where(UserSubscription.paddle_subscription_id == data.id)
                .values(**values)
            )
            await self.db.commit()
            return result.rowcount

        matched = await self._store_call("cancel_subscription", _write)
        if matched == 0:
            self.log.warning("No subscription record to cancel", paddle_subscription_id=data.id)
        return matched

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def sync_subscription(self, event: PaddleWebhookEvent) -> SyncResult:
        """Handle subscription.created and subscription.updated."""
        data: SubscriptionEventData = event.data
        user_id = event.user_id
        self.log.info(
            "Processing subscription event",
            event_type=event.event_type,
            event_id=event.event_id,
            user_id=user_id,
            subscription_id=data.id,
            status=data.status,
        )

        try:
            await self.validate_user(user_id)
        except StoreError as e:
            return SyncResult(False, f"User validation failed: {e.message}")

        product_id = data.resolve_product_id()
        if not product_id:
            self.log.error("No product ID found in subscription", user_id=user_id)
            return SyncResult(False, "Product ID missing in subscription data")

        try:
            plan = await self.find_plan(product_id)
        except PlanLookupError as e:
            self.log.error("Subscription plan not found", product_id=product_id)
            return SyncResult(False, str(e))
        except StoreError as e:
            return SyncResult(False, f"Plan lookup failed: {e.message}")

        plan_name = plan.name
        plan_id = plan.id

        try:
            await self.upsert_profile(
                user_id,
                data.custom_data,
                status=data.status,
                plan_name=plan_name.lower(),
                customer_id=data.customer_id,
            )
        except StoreError as e:
            return SyncResult(False, f"Profile update failed: {e.message}")

        try:
            await self.upsert_subscription(user_id, plan_id, data)
        except StoreError as e:
            return SyncResult(False, f"Subscription update failed: {e.message}")

        return SyncResult(
            True, f"Subscription {data.status} processed successfully for plan {plan_name}"
        )

    async def sync_transaction(self, event: PaddleWebhookEvent) -> SyncResult:
        """Handle transaction.completed; only one-time purchases touch the profile."""
        data: TransactionEventData = event.data
        user_id = event.user_id
        self.log.info(
            "Processing transaction completed event",
            event_id=event.event_id,
            user_id=user_id,
            transaction_id=data.id,
            amount=data.total,
            currency=data.currency_code,
        )

        try:
            await self.validate_user(user_id)
        except StoreError as e:
            return SyncResult(False, f"User validation failed: {e.message}")

        if data.is_one_time_purchase:
            product_id = data.resolve_product_id()
            plan = None
            if product_id:
                try:
                    plan = await self.find_plan(product_id)
                except PlanLookupError:
                    self.log.info("No plan for one-time purchase", product_id=product_id)
                except StoreError as e:
                    return SyncResult(
                        False, f"Plan lookup failed for one-time payment: {e.message}"
                    )

            if plan is not None:
                plan_name = plan.name
                try:
                    await self.upsert_profile(
                        user_id,
                        data.custom_data,
                        status=SubscriptionStatus.ACTIVE.value,
                        plan_name=plan_name.lower(),
                        customer_id=data.customer_id,
                    )
                except StoreError as e:
                    return SyncResult(
                        False, f"Profile update failed for one-time payment: {e.message}"
                    )
                self.log.info("One-time payment processed", user_id=user_id, plan=plan_name)

        return SyncResult(True, "Transaction completed event processed successfully")

    async def sync_cancellation(self, event: PaddleWebhookEvent) -> SyncResult:
        """Handle subscription.canceled: drop the profile to the free plan."""
        data: SubscriptionEventData = event.data
        user_id = event.user_id
        self.log.info(
            "Processing subscription cancellation",
            event_id=event.event_id,
            user_id=user_id,
            subscription_id=data.id,
        )

        try:
            await self.validate_user(user_id)
        except StoreError as e:
            return SyncResult(False, f"User validation failed: {e.message}")

        try:
            await self.upsert_profile(
                user_id,
                data.custom_data,
                status=data.status or SubscriptionStatus.CANCELED.value,
                plan_name=FREE_PLAN,
                customer_id=data.customer_id,
            )
        except StoreError as e:
            return SyncResult(False, f"Profile update failed for cancellation: {e.message}")

        try:
            await self.mark_subscription_canceled(data)
        except StoreError as e:
            return SyncResult(False, f"Subscription record update failed: {e.message}")

        return SyncResult(True, "Subscription cancellation processed successfully")
