"""Structural validation of decoded webhook bodies."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ValidationResult:
    """All structural problems found in a webhook payload."""

    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_webhook_payload(payload: Any) -> ValidationResult:
    """
    Check that a decoded body carries the fields every handler relies on.

    Every violated rule is reported, not just the first. The event type is
    not checked against a known set; unknown types are acknowledged later.
    """
    result = ValidationResult()

    if not isinstance(payload, dict):
        result.errors.append("Payload must be a JSON object")
        return result

    if not payload.get("event_type"):
        result.errors.append("Missing event_type")

    if not payload.get("event_id"):
        result.errors.append("Missing event_id")

    data = payload.get("data")
    if not isinstance(data, dict):
        result.errors.append("Missing data object")
    else:
        custom_data = data.get("custom_data")
        if not isinstance(custom_data, dict) or not custom_data.get("userId"):
            result.errors.append("Missing userId in custom_data")

    return result
