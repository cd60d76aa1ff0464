"""
Webhook audit trail.

Writes one ``webhook_logs`` row per Paddle event id. Recording is best effort:
a failure here is logged and never changes the response sent to Paddle.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database import upsert
from infrastructure.database.models import WebhookLog, WebhookLogStatus
from services.webhook_logger import WebhookLogger


async def record_webhook_event(
    db: AsyncSession,
    log: WebhookLogger,
    event_id: str,
    event_type: str,
    payload: dict[str, Any],
    success: bool,
    error_message: Optional[str] = None,
) -> bool:
    """
    Insert or overwrite the audit row for ``event_id``.

    Returns:
        True if the row was written, False if the write failed
    """
    values = {
        "event_id": event_id,
        "event_type": event_type,
        "payload": payload,
        "status": (WebhookLogStatus.SUCCESS if success else WebhookLogStatus.FAILED).value,
        "error_message": None if success else error_message,
        "processed_at": datetime.now(timezone.utc),
    }
    try:
        await upsert(db, WebhookLog, values, ["event_id"])
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        log.warning("Failed to record webhook event", event_id=event_id, error=str(e))
        return False
    return True
