"""
Per-request webhook logging.

Each request gets its own ``WebhookLogger`` tagged with the request id. Entries
go to the standard ``logging`` tree and to a bounded ``LogHistory`` kept for
diagnostics; once the history is full the oldest entry is dropped.
"""

import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Optional

DEFAULT_HISTORY_SIZE = 100

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


@dataclass
class LogEntry:
    timestamp: str
    level: str
    message: str
    request_id: str
    data: dict[str, Any] = field(default_factory=dict)


class LogHistory:
    """Thread-safe ring buffer of recent webhook log entries."""

    def __init__(self, max_size: int = DEFAULT_HISTORY_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._entries: deque[LogEntry] = deque(maxlen=max_size)
        self._lock = Lock()

    @property
    def max_size(self) -> int:
        return self._entries.maxlen or 0

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self, request_id: Optional[str] = None) -> list[LogEntry]:
        """Return entries oldest first, optionally only those of one request."""
        with self._lock:
            snapshot = list(self._entries)
        if request_id is None:
            return snapshot
        return [e for e in snapshot if e.request_id == request_id]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def export(self) -> str:
        """Serialize the history to a JSON array."""
        return json.dumps([asdict(e) for e in self.entries()], default=str)

    def __len__(self) -> int:
        return len(self._entries)


class WebhookLogger:
    """Logger bound to a single webhook request."""

    def __init__(
        self,
        request_id: str,
        history: LogHistory,
        logger: Optional[logging.Logger] = None,
    ):
        self.request_id = request_id
        self.history = history
        self._logger = logger or logging.getLogger("webhook")

    def _log(self, level: str, message: str, data: dict[str, Any]) -> None:
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level.upper(),
            message=message,
            request_id=self.request_id,
            data=data,
        )
        self.history.append(entry)
        self._logger.log(
            _LEVELS[level],
            "[%s] %s",
            self.request_id,
            message,
            extra={"request_id": self.request_id, "data": data},
        )

    def debug(self, message: str, /, **data: Any) -> None:
        self._log("debug", message, data)

    def info(self, message: str, /, **data: Any) -> None:
        self._log("info", message, data)

    def warning(self, message: str, /, **data: Any) -> None:
        self._log("warning", message, data)

    def error(self, message: str, /, **data: Any) -> None:
        self._log("error", message, data)

    def critical(self, message: str, /, **data: Any) -> None:
        self._log("critical", message, data)


_history: Optional[LogHistory] = None


def get_log_history(max_size: int = DEFAULT_HISTORY_SIZE) -> LogHistory:
    """Return the process-wide history, creating it with ``max_size`` on first use."""
    global _history
    if _history is None:
        _history = LogHistory(max_size)
    return _history
