"""
Security utilities for webhook authentication.
"""

from .webhook_signature import (
    SignatureCheck,
    SignatureHeader,
    SignatureReason,
    compute_signature,
    parse_signature_header,
    verify_paddle_signature,
)

__all__ = [
    "SignatureCheck",
    "SignatureHeader",
    "SignatureReason",
    "compute_signature",
    "parse_signature_header",
    "verify_paddle_signature",
]
