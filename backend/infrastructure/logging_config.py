"""
Logging setup for the webhook service.

Every record passes a redaction filter before it is written: Paddle signature
hashes, the notification signing secret, the database service key and DSN
passwords never reach stdout. Production output is one JSON object per line
carrying the request id and the webhook logger's ``data`` payload.
"""

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

_MASK = "[REDACTED]"

_SENSITIVE_PATTERNS = [
    # Paddle-Signature header hash
    (re.compile(r"(h1=)[0-9a-fA-F]+"), rf"\1{_MASK}"),
    # Paddle notification secret
    (re.compile(r"pdl_ntfset_\w+"), _MASK),
    (re.compile(r"(Authorization:\s*Bearer\s+)\S+", re.IGNORECASE), rf"\1{_MASK}"),
    (
        re.compile(r'((?:service[_-]?key|password|secret)["\s:=]+)[^\s&"\']+', re.IGNORECASE),
        rf"\1{_MASK}",
    ),
    # user:password@host in database URLs
    (re.compile(r"(://[^:/@\s]+:)[^@\s]+(@)"), rf"\1{_MASK}\2"),
]

# Record attributes copied into JSON output when present
_EXTRA_FIELDS = ("request_id", "method", "path", "status_code", "duration_ms", "data")

_NOISY_LOGGERS = {
    "uvicorn.access": logging.INFO,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
}


def redact(value: str) -> str:
    """Return ``value`` with every known secret pattern masked."""
    for pattern, replacement in _SENSITIVE_PATTERNS:
        value = pattern.sub(replacement, value)
    return value


def _redact_any(value: Any) -> Any:
    if isinstance(value, str):
        return redact(value)
    if isinstance(value, dict):
        return {k: _redact_any(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return tuple(_redact_any(v) for v in value)
    if isinstance(value, list):
        return [_redact_any(v) for v in value]
    return value


class SensitiveDataFilter(logging.Filter):
    """Masks secrets in the message, its arguments and webhook ``data``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if isinstance(record.args, (tuple, dict)):
            record.args = _redact_any(record.args)
        data = getattr(record, "data", None)
        if data:
            record.data = _redact_any(data)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(
            {key: getattr(record, key) for key in _EXTRA_FIELDS if hasattr(record, key)}
        )
        return json.dumps(entry, default=str)


def setup_logging(json_output: bool = False, level: str = "INFO") -> None:
    """
    Configure the root logger.

    Args:
        json_output: JSON lines (production) instead of the plain console format.
        level: Root log level name.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JSONFormatter()
        if json_output
        else logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
    )
    # On the handler so records propagated from child loggers are scrubbed too
    handler.addFilter(SensitiveDataFilter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)
