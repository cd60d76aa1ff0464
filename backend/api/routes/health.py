"""Health check endpoints."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.config import Settings, get_settings
from infrastructure.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter()

DB_CHECK_TIMEOUT_SECONDS = 5.0


def _service_info(settings: Settings) -> dict:
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/health")
async def health_check(settings: Annotated[Settings, Depends(get_settings)]):
    """Liveness plus whether the webhook has the configuration it needs."""
    missing = settings.missing_webhook_config()
    return {
        "status": "healthy" if not missing else "degraded",
        "webhook_configured": not missing,
        **_service_info(settings),
    }


@router.get("/health/db")
async def health_check_db(
    settings: Annotated[Settings, Depends(get_settings)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Store connectivity check."""
    try:
        result = await asyncio.wait_for(
            db.execute(text("SELECT 1")), timeout=DB_CHECK_TIMEOUT_SECONDS
        )
        result.scalar()
        db_status = "connected"
    except TimeoutError:
        logger.error("Health check DB timeout")
        db_status = "error: database timeout"
    except Exception as e:
        logger.error("Health check DB error: %s", str(e))
        db_status = "error: database check failed"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "database": db_status,
        **_service_info(settings),
    }
