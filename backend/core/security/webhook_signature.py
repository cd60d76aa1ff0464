"""
Paddle webhook signature verification.

Paddle signs every notification with a ``Paddle-Signature`` header of the form
``ts=<unix-seconds>;h1=<hex-hmac>``. The signed payload is ``"<ts>:<raw body>"``
and the MAC is HMAC-SHA256 keyed by the endpoint's signing secret.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


class SignatureReason(StrEnum):
    """Outcome of a signature check."""

    VALID = "valid"
    BYPASSED_FOR_DEVELOPMENT = "bypassed_for_development"
    MISSING_SIGNING_SECRET = "missing_signing_secret"
    MISSING_SIGNATURE_HEADER = "missing_signature_header"
    INVALID_SIGNATURE_FORMAT = "invalid_signature_format"
    TIMESTAMP_TOO_OLD = "timestamp_too_old"
    SIGNATURE_MISMATCH = "signature_mismatch"


@dataclass(frozen=True)
class SignatureCheck:
    """Result of verifying a Paddle-Signature header."""

    valid: bool
    reason: SignatureReason


@dataclass(frozen=True)
class SignatureHeader:
    """Parsed ``ts``/``h1`` pair from a Paddle-Signature header."""

    timestamp: int
    raw_timestamp: str
    h1: str


def parse_signature_header(header: str) -> SignatureHeader | None:
    """
    Parse a ``ts=...;h1=...`` header.

    Returns None when either field is absent or the timestamp is not an integer.
    """
    fields: dict[str, str] = {}
    for part in header.split(";"):
        key, sep, value = part.strip().partition("=")
        if sep and key and key not in fields:
            fields[key] = value.strip()

    raw_timestamp = fields.get("ts")
    h1 = fields.get("h1")
    if not raw_timestamp or not h1:
        return None

    try:
        timestamp = int(raw_timestamp)
    except ValueError:
        return None

    return SignatureHeader(timestamp=timestamp, raw_timestamp=raw_timestamp, h1=h1)


def compute_signature(raw_body: bytes, timestamp: str, secret: str) -> str:
    """Return the hex HMAC-SHA256 of ``"<timestamp>:<raw_body>"``."""
    signed_payload = timestamp.encode() + b":" + raw_body
    return hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()


def verify_paddle_signature(
    raw_body: bytes,
    signature_header: str | None,
    secret: str | None,
    current_time: float,
    environment: str,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> SignatureCheck:
    """
    Verify the authenticity and freshness of a Paddle webhook request.

    Args:
        raw_body: Exact request body bytes as received
        signature_header: Value of the Paddle-Signature header, if any
        secret: Endpoint signing secret
        current_time: Current unix time in seconds
        environment: Deployment environment name; only "production" verifies
        tolerance_seconds: Maximum allowed |current_time - ts| in either direction

    Returns:
        SignatureCheck with the validity flag and the reason
    """
    if environment.strip().lower() != "production":
        logger.warning(
            "SECURITY_BYPASS: Paddle signature verification is bypassed in %s environment",
            environment,
        )
        return SignatureCheck(True, SignatureReason.BYPASSED_FOR_DEVELOPMENT)

    if not secret:
        logger.error("Paddle webhook signing secret is not configured for production")
        return SignatureCheck(False, SignatureReason.MISSING_SIGNING_SECRET)

    if not signature_header:
        logger.warning("Missing Paddle-Signature header")
        return SignatureCheck(False, SignatureReason.MISSING_SIGNATURE_HEADER)

    parsed = parse_signature_header(signature_header)
    if parsed is None:
        logger.warning("Invalid Paddle-Signature header format")
        return SignatureCheck(False, SignatureReason.INVALID_SIGNATURE_FORMAT)

    drift = abs(current_time - parsed.timestamp)
    if drift > tolerance_seconds:
        logger.warning(
            "Paddle-Signature timestamp outside tolerance: drift=%.0fs tolerance=%ds",
            drift,
            tolerance_seconds,
        )
        return SignatureCheck(False, SignatureReason.TIMESTAMP_TOO_OLD)

    expected = compute_signature(raw_body, parsed.raw_timestamp, secret)
    if not hmac.compare_digest(expected.encode(), parsed.h1.lower().encode()):
        return SignatureCheck(False, SignatureReason.SIGNATURE_MISMATCH)

    return SignatureCheck(True, SignatureReason.VALID)
