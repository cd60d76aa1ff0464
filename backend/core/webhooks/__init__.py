"""Provider-independent webhook checks."""

from .validation import ValidationResult, validate_webhook_payload

__all__ = ["ValidationResult", "validate_webhook_payload"]
