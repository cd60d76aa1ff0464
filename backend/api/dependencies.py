"""
API dependencies for webhook processing.
"""

import uuid
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.config import Settings, get_settings
from infrastructure.database import get_db
from services.subscription_sync import SubscriptionSynchronizer
from services.webhook_logger import WebhookLogger, get_log_history


def get_request_id(request: Request) -> str:
    """Return the id assigned by the request-id middleware."""
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
    return request_id


async def require_webhook_config(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Settings:
    """
    Ensure the webhook is configured before anything else runs.

    Raises:
        ConfigError: If a required setting is missing
    """
    settings.validate_webhook_config()
    return settings


def get_webhook_logger(
    request_id: Annotated[str, Depends(get_request_id)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> WebhookLogger:
    """Create the logger for this request."""
    return WebhookLogger(request_id, get_log_history(settings.webhook_log_history_size))


def get_synchronizer(
    db: Annotated[AsyncSession, Depends(get_db)],
    log: Annotated[WebhookLogger, Depends(get_webhook_logger)],
) -> SubscriptionSynchronizer:
    return SubscriptionSynchronizer(db, log)
