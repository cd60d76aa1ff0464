"""
Integration tests for the profile/subscription synchronizer.

Run against in-memory SQLite with the same session the handlers write through.
"""

from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.payments import PaddleWebhookEvent
from infrastructure.database.models import Profile, SubscriptionPlan, UserSubscription
from services.subscription_sync import SubscriptionSynchronizer


def _event(payload: dict) -> PaddleWebhookEvent:
    return PaddleWebhookEvent.from_webhook_payload(payload)


def _locked() -> OperationalError:
    return OperationalError("UPDATE profiles", {}, Exception("database is locked"))


def _fail_execute_call(db: AsyncSession, failing_call: int):
    """Replace ``db.execute`` with one that raises on its ``failing_call``-th use."""
    real_execute = db.execute
    calls = 0

    async def execute(*args, **kwargs):
        nonlocal calls
        calls += 1
        if calls == failing_call:
            raise _locked()
        return await real_execute(*args, **kwargs)

    return patch.object(db, "execute", execute)


async def _profile(db: AsyncSession, user_id: str) -> Profile | None:
    result = await db.execute(
        select(Profile)
        .where(Profile.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _subscription(db: AsyncSession, paddle_id: str) -> UserSubscription | None:
    result = await db.execute(
        select(UserSubscription)
        .where(UserSubscription.paddle_subscription_id == paddle_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.fixture
def synchronizer(db_session: AsyncSession, webhook_logger) -> SubscriptionSynchronizer:
    return SubscriptionSynchronizer(db_session, webhook_logger)


class TestSubscriptionSync:
    async def test_created_event_creates_profile_and_subscription(
        self, synchronizer, db_session, starter_plan: SubscriptionPlan, subscription_payload
    ):
        result = await synchronizer.sync_subscription(_event(subscription_payload()))

        assert result.success is True
        assert result.message == "Subscription active processed successfully for plan Starter"

        profile = await _profile(db_session, "user-123")
        assert profile.email == "jane@example.com"
        assert profile.full_name == "Jane Doe"
        assert profile.subscription_status == "active"
        assert profile.subscription_plan == "starter"
        assert profile.paddle_customer_id == "ctm_01"

        subscription = await _subscription(db_session, "sub_01")
        assert subscription.user_id == "user-123"
        assert subscription.plan_id == starter_plan.id
        assert subscription.status == "active"
        assert subscription.current_period_start.replace(tzinfo=None) == datetime(2026, 10, 1)
        assert subscription.current_period_end.replace(tzinfo=None) == datetime(2026, 11, 1)

    async def test_profile_defaults_when_custom_data_is_sparse(
        self, synchronizer, db_session, starter_plan, subscription_payload
    ):
        payload = subscription_payload(status=None)
        payload["data"]["custom_data"] = {"userId": "user-sparse"}

        result = await synchronizer.sync_subscription(_event(payload))

        assert result.success is True
        profile = await _profile(db_session, "user-sparse")
        assert profile.email == "unknown@example.com"
        assert profile.full_name == "Unknown User"
        assert profile.subscription_status == "active"

    async def test_replayed_event_is_idempotent(
        self, synchronizer, db_session, starter_plan, subscription_payload
    ):
        payload = subscription_payload()

        first = await synchronizer.sync_subscription(_event(payload))
        second = await synchronizer.sync_subscription(_event(payload))

        assert first.success and second.success
        assert await _count(db_session, Profile) == 1
        assert await _count(db_session, UserSubscription) == 1

    async def test_updated_event_changes_plan_and_status(
        self, synchronizer, db_session, starter_plan, pro_plan, subscription_payload
    ):
        await synchronizer.sync_subscription(_event(subscription_payload()))

        result = await synchronizer.sync_subscription(
            _event(
                subscription_payload(
                    event_type="subscription.updated",
                    product_id="pro_professional",
                    status="past_due",
                )
            )
        )

        assert result.message == (
            "Subscription past_due processed successfully for plan Professional"
        )
        profile = await _profile(db_session, "user-123")
        assert profile.subscription_plan == "professional"
        assert profile.subscription_status == "past_due"
        subscription = await _subscription(db_session, "sub_01")
        assert subscription.plan_id == pro_plan.id
        assert subscription.status == "past_due"
        assert await _count(db_session, UserSubscription) == 1

    async def test_price_id_used_when_product_id_missing(
        self, synchronizer, db_session, subscription_payload
    ):
        db_session.add(SubscriptionPlan(paddle_product_id="pri_01", name="Legacy"))
        await db_session.commit()
        payload = subscription_payload()
        payload["data"]["items"] = [{"price_id": "pri_01"}]

        result = await synchronizer.sync_subscription(_event(payload))

        assert result.message == "Subscription active processed successfully for plan Legacy"

    async def test_missing_product_id(self, synchronizer, db_session, subscription_payload):
        result = await synchronizer.sync_subscription(_event(subscription_payload(product_id=None)))

        assert result.success is False
        assert result.message == "Product ID missing in subscription data"
        assert await _profile(db_session, "user-123") is None

    async def test_unknown_plan_does_not_touch_profile(
        self, synchronizer, db_session, starter_plan, subscription_payload
    ):
        result = await synchronizer.sync_subscription(
            _event(subscription_payload(product_id="pro_unknown"))
        )

        assert result.success is False
        assert result.message == "Subscription plan not found for product ID: pro_unknown"
        assert await _profile(db_session, "user-123") is None
        assert await _count(db_session, UserSubscription) == 0


class TestTransactionSync:
    async def test_one_time_purchase_activates_plan(
        self, synchronizer, db_session, starter_plan, transaction_payload
    ):
        result = await synchronizer.sync_transaction(_event(transaction_payload()))

        assert result.success is True
        assert result.message == "Transaction completed event processed successfully"
        profile = await _profile(db_session, "user-123")
        assert profile.subscription_status == "active"
        assert profile.subscription_plan == "starter"

    async def test_subscription_transaction_leaves_profile_alone(
        self, synchronizer, db_session, starter_plan, transaction_payload
    ):
        result = await synchronizer.sync_transaction(
            _event(transaction_payload(subscription_id="sub_01"))
        )

        assert result.success is True
        assert await _profile(db_session, "user-123") is None

    async def test_unmatched_plan_is_not_a_failure(
        self, synchronizer, db_session, transaction_payload
    ):
        result = await synchronizer.sync_transaction(
            _event(transaction_payload(product_id="pro_unknown"))
        )

        assert result.success is True
        assert await _profile(db_session, "user-123") is None


class TestCancellationSync:
    async def test_cancel_moves_profile_to_free_and_updates_subscription(
        self, synchronizer, db_session, starter_plan, subscription_payload
    ):
        await synchronizer.sync_subscription(_event(subscription_payload()))

        result = await synchronizer.sync_cancellation(
            _event(
                subscription_payload(
                    event_type="subscription.canceled",
                    status="canceled",
                    ends_at="2026-10-15T00:00:00Z",
                )
            )
        )

        assert result.success is True
        assert result.message == "Subscription cancellation processed successfully"
        profile = await _profile(db_session, "user-123")
        assert profile.subscription_plan == "free"
        assert profile.subscription_status == "canceled"
        subscription = await _subscription(db_session, "sub_01")
        assert subscription.status == "canceled"
        assert subscription.current_period_end.replace(tzinfo=None) == datetime(2026, 10, 15)

    async def test_cancel_defaults_status_and_period_end(
        self, synchronizer, db_session, starter_plan, subscription_payload
    ):
        await synchronizer.sync_subscription(_event(subscription_payload()))
        before = datetime.utcnow()

        await synchronizer.sync_cancellation(
            _event(
                subscription_payload(
                    event_type="subscription.canceled",
                    status=None,
                    current_billing_period=None,
                )
            )
        )

        profile = await _profile(db_session, "user-123")
        assert profile.subscription_status == "canceled"
        subscription = await _subscription(db_session, "sub_01")
        assert subscription.status == "canceled"
        assert subscription.current_period_end.replace(tzinfo=None) >= before.replace(
            microsecond=0
        )

    async def test_cancel_without_subscription_row_never_inserts(
        self, synchronizer, db_session, subscription_payload
    ):
        result = await synchronizer.sync_cancellation(
            _event(subscription_payload(event_type="subscription.canceled", status="canceled"))
        )

        assert result.success is True
        assert await _count(db_session, UserSubscription) == 0
        assert (await _profile(db_session, "user-123")).subscription_plan == "free"


class TestStoreFailures:
    async def test_lookup_failure_reports_user_validation(
        self, synchronizer, db_session, subscription_payload
    ):
        with patch.object(db_session, "execute", AsyncMock(side_effect=_locked())):
            result = await synchronizer.sync_subscription(_event(subscription_payload()))

        assert result.success is False
        assert result.message == "User validation failed: database is locked"

    async def test_profile_write_failure(
        self, synchronizer, db_session, starter_plan, subscription_payload
    ):
        with patch.object(db_session, "commit", AsyncMock(side_effect=_locked())):
            result = await synchronizer.sync_subscription(_event(subscription_payload()))

        assert result.success is False
        assert result.message == "Profile update failed: database is locked"
        assert await _count(db_session, UserSubscription) == 0

    async def test_subscription_write_failure_keeps_committed_profile(
        self, synchronizer, db_session, starter_plan, subscription_payload
    ):
        real_commit = db_session.commit
        calls = 0

        async def flaky_commit():
            nonlocal calls
            calls += 1
            if calls == 2:
                raise _locked()
            await real_commit()

        with patch.object(db_session, "commit", flaky_commit):
            result = await synchronizer.sync_subscription(_event(subscription_payload()))

        assert result.success is False
        assert result.message == "Subscription update failed: database is locked"
        assert (await _profile(db_session, "user-123")).subscription_plan == "starter"
        assert await _count(db_session, UserSubscription) == 0

    async def test_redelivery_heals_partial_failure(
        self, synchronizer, db_session, starter_plan, subscription_payload
    ):
        payload = subscription_payload()
        real_commit = db_session.commit
        calls = 0

        async def flaky_commit():
            nonlocal calls
            calls += 1
            if calls == 2:
                raise _locked()
            await real_commit()

        with patch.object(db_session, "commit", flaky_commit):
            await synchronizer.sync_subscription(_event(payload))

        result = await synchronizer.sync_subscription(_event(payload))

        assert result.success is True
        assert await _subscription(db_session, "sub_01") is not None

    async def test_cancel_subscription_update_failure(
        self, synchronizer, db_session, subscription_payload
    ):
        real_commit = db_session.commit
        calls = 0

        async def flaky_commit():
            nonlocal calls
            calls += 1
            if calls == 2:
                raise _locked()
            await real_commit()

        with patch.object(db_session, "commit", flaky_commit):
            result = await synchronizer.sync_cancellation(
                _event(subscription_payload(event_type="subscription.canceled"))
            )

        assert result.success is False
        assert result.message == "Subscription record update failed: database is locked"

    async def test_plan_lookup_failure_is_reported(
        self, synchronizer, db_session, starter_plan, subscription_payload
    ):
        # First execute validates the user, the second looks up the plan
        with _fail_execute_call(db_session, 2):
            result = await synchronizer.sync_subscription(_event(subscription_payload()))

        assert result.success is False
        assert result.message == "Plan lookup failed: database is locked"
        assert await _profile(db_session, "user-123") is None

    async def test_one_time_purchase_plan_lookup_failure_is_reported(
        self, synchronizer, db_session, starter_plan, transaction_payload
    ):
        with _fail_execute_call(db_session, 2):
            result = await synchronizer.sync_transaction(_event(transaction_payload()))

        assert result.success is False
        assert result.message == "Plan lookup failed for one-time payment: database is locked"
        assert await _profile(db_session, "user-123") is None
