"""
Paddle webhook endpoint.

Request flow: configuration check, raw body, signature, JSON decode,
structural validation, typed parsing, routing to the synchronizer, audit.
Rejections before routing have no side effects.
"""

import json
import logging
import time
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.requests import ClientDisconnect

from adapters.payments import PaddleWebhookEvent
from api.dependencies import get_synchronizer, get_webhook_logger, require_webhook_config
from api.middleware.rate_limit import get_rate_limit, limiter
from api.schemas.webhook import WebhookAck, WebhookErrorResponse
from core.exceptions import PayloadValidationError, SignatureError
from core.security import verify_paddle_signature
from core.webhooks import validate_webhook_payload
from infrastructure.config import Settings
from services.subscription_sync import SubscriptionSynchronizer
from services.webhook_audit import record_webhook_event
from services.webhook_logger import WebhookLogger
from services.webhook_router import dispatch_event

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhooks"])


@router.options("/webhook")
async def webhook_preflight() -> PlainTextResponse:
    """CORS preflight for the webhook endpoint."""
    return PlainTextResponse("ok")


@router.post(
    "/webhook",
    response_model=WebhookAck,
    responses={
        400: {"model": WebhookErrorResponse},
        401: {"model": WebhookErrorResponse},
        500: {"model": WebhookErrorResponse},
    },
)
@limiter.limit(get_rate_limit("webhook"))
async def receive_paddle_webhook(
    request: Request,
    settings: Annotated[Settings, Depends(require_webhook_config)],
    log: Annotated[WebhookLogger, Depends(get_webhook_logger)],
    synchronizer: Annotated[SubscriptionSynchronizer, Depends(get_synchronizer)],
):
    """
    Receive a Paddle notification and synchronize profile/subscription rows.

    Returns 200 for every authenticated, well-formed event, including ones
    whose handler failed (``received`` is then false) and unknown event types.
    """
    log.info(
        "Webhook request received",
        method=request.method,
        environment=settings.environment,
        has_signature="paddle-signature" in request.headers,
    )

    try:
        raw_body = await request.body()
    except ClientDisconnect as e:
        log.error("Failed to read request body")
        raise PayloadValidationError("Invalid request body") from e

    check = verify_paddle_signature(
        raw_body,
        request.headers.get("paddle-signature"),
        settings.paddle_webhook_signing_secret,
        current_time=time.time(),
        environment=settings.environment,
        tolerance_seconds=settings.webhook_timestamp_tolerance_seconds,
    )
    if not check.valid:
        log.error("Signature verification failed", reason=check.reason.value)
        raise SignatureError(check.reason.value)
    log.debug("Signature check passed", reason=check.reason.value)

    try:
        payload = json.loads(raw_body)
    except ValueError as e:
        log.error("Failed to parse JSON payload", error=str(e))
        raise PayloadValidationError("Invalid JSON payload") from e

    validation = validate_webhook_payload(payload)
    if not validation.valid:
        log.error("Payload validation failed", errors=validation.errors)
        raise PayloadValidationError("Invalid payload structure", validation.errors)

    event = PaddleWebhookEvent.from_webhook_payload(payload)
    log.info(
        "Processing webhook event",
        event_type=event.event_type,
        event_id=event.event_id,
        user_id=event.user_id,
    )

    try:
        result = await dispatch_event(event, synchronizer)
    except Exception as e:
        logger.exception("Unhandled error processing webhook event %s", event.event_id)
        log.critical("Unhandled error processing webhook event", error=str(e))
        return JSONResponse(
            status_code=500,
            content=WebhookErrorResponse(
                error="Internal server error", request_id=log.request_id
            ).to_content(),
        )

    if result.success:
        log.info("Webhook processed", event_id=event.event_id, outcome=result.message)
    else:
        log.error("Webhook processing failed", event_id=event.event_id, outcome=result.message)

    if settings.webhook_audit_enabled:
        await record_webhook_event(
            synchronizer.db,
            log,
            event_id=event.event_id,
            event_type=event.event_type,
            payload=payload,
            success=result.success,
            error_message=result.message,
        )

    ack = WebhookAck(received=result.success, message=result.message, request_id=log.request_id)
    return JSONResponse(status_code=200, content=ack.model_dump(by_alias=True))
