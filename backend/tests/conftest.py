"""
Pytest configuration and shared fixtures for backend tests.
"""

import hashlib
import hmac
import json
import sys
import time
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncGenerator, Callable, Optional
from uuid import uuid4

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import after path is set
from infrastructure.config import Settings, get_settings
from infrastructure.database.connection import get_db
from infrastructure.database.models import Base, SubscriptionPlan
from services.webhook_logger import LogHistory, WebhookLogger

# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_SIGNING_SECRET = "test_secret"


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the process environment and any .env file."""
    values = {
        "environment": "development",
        "database_url": TEST_DATABASE_URL,
        "database_service_key": "test-service-key",
        "paddle_webhook_signing_secret": TEST_SIGNING_SECRET,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def sign_body(body: bytes, secret: str = TEST_SIGNING_SECRET, ts: Optional[int] = None) -> str:
    """Build a Paddle-Signature header value for ``body``."""
    ts = int(time.time()) if ts is None else ts
    digest = hmac.new(secret.encode(), f"{ts}:".encode() + body, hashlib.sha256).hexdigest()
    return f"ts={ts};h1={digest}"


def encode_payload(payload: Any) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode()


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def starter_plan(db_session: AsyncSession) -> SubscriptionPlan:
    plan = SubscriptionPlan(
        paddle_product_id="pro_starter",
        name="Starter",
        price=Decimal("9.99"),
        interval_type="month",
    )
    db_session.add(plan)
    await db_session.commit()
    await db_session.refresh(plan)
    return plan


@pytest.fixture
async def pro_plan(db_session: AsyncSession) -> SubscriptionPlan:
    plan = SubscriptionPlan(
        paddle_product_id="pro_professional",
        name="Professional",
        price=Decimal("29.00"),
        interval_type="month",
    )
    db_session.add(plan)
    await db_session.commit()
    await db_session.refresh(plan)
    return plan


@pytest.fixture
def log_history() -> LogHistory:
    return LogHistory(max_size=100)


@pytest.fixture
def webhook_logger(log_history: LogHistory) -> WebhookLogger:
    return WebhookLogger(str(uuid4()), log_history)


@pytest.fixture
def subscription_payload() -> Callable[..., dict]:
    """Factory for Paddle subscription event payloads."""

    def _build(
        event_type: str = "subscription.created",
        user_id: str = "user-123",
        subscription_id: str = "sub_01",
        product_id: Optional[str] = "pro_starter",
        status: Optional[str] = "active",
        ends_at: Optional[str] = "2026-11-01T00:00:00Z",
        **data_overrides: Any,
    ) -> dict:
        items = [{"price_id": "pri_01", "product_id": product_id, "quantity": 1}]
        data = {
            "id": subscription_id,
            "customer_id": "ctm_01",
            "status": status,
            "items": items if product_id else [],
            "current_billing_period": {
                "starts_at": "2026-10-01T00:00:00Z",
                "ends_at": ends_at,
            },
            "custom_data": {
                "userId": user_id,
                "email": "jane@example.com",
                "full_name": "Jane Doe",
            },
        }
        data.update(data_overrides)
        return {
            "event_type": event_type,
            "event_id": f"evt_{uuid4().hex[:12]}",
            "occurred_at": "2026-10-01T00:00:01Z",
            "data": data,
        }

    return _build


@pytest.fixture
def transaction_payload() -> Callable[..., dict]:
    """Factory for Paddle transaction.completed payloads."""

    def _build(
        user_id: str = "user-123",
        product_id: Optional[str] = "pro_starter",
        subscription_id: Optional[str] = None,
        **data_overrides: Any,
    ) -> dict:
        data = {
            "id": "txn_01",
            "customer_id": "ctm_01",
            "status": "completed",
            "subscription_id": subscription_id,
            "currency_code": "USD",
            "details": {"totals": {"total": 999}},
            "items": [{"price_id": "pri_01", "product_id": product_id, "quantity": 1}],
            "custom_data": {"userId": user_id},
        }
        data.update(data_overrides)
        return {
            "event_type": "transaction.completed",
            "event_id": f"evt_{uuid4().hex[:12]}",
            "occurred_at": "2026-10-01T00:00:01Z",
            "data": data,
        }

    return _build


@asynccontextmanager
async def _client_for(db_session: AsyncSession, settings: Settings):
    # Import app here to avoid circular imports
    from main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings

    # Reset rate limiter state between tests to prevent cross-test 429s
    app.state.limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app in development mode (signature bypassed)."""
    async with _client_for(db_session, make_settings()) as client:
        yield client


@pytest.fixture
async def production_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app in production mode (signature enforced)."""
    async with _client_for(db_session, make_settings(environment="production")) as client:
        yield client


@pytest.fixture
def sign() -> Callable[..., str]:
    """Signature header builder: sign(body, secret=..., ts=...)."""
    return sign_body


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings
