"""
Process-wide ring buffer of recent operation logs.

Holds at most `capacity` records; appending past that drops the oldest.
Reads return newest first.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List

import structlog

DEFAULT_CAPACITY = 500
DEFAULT_LIMIT = 100


@dataclass
class LogRecord:
    level: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "message": self.message,
            "details": self.details,
        }


def _resolve_limit(limit: int | str) -> int:
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return limit if limit > 0 else DEFAULT_LIMIT


class LogBuffer:
    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._records: Deque[LogRecord] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._records.maxlen or 0

    def append(self, record: LogRecord):
        self._records.append(record)

    def list(self, limit: int | str | None = DEFAULT_LIMIT) -> List[LogRecord]:
        """
        Newest first. `None` returns everything; a limit that is not a
        positive integer falls back to the default of 100.
        """
        records = list(reversed(self._records))
        if limit is None:
            return records
        return records[: _resolve_limit(limit)]

    def clear(self):
        self._records.clear()

    def resize(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._records = deque(self._records, maxlen=capacity)

    def __len__(self):
        return len(self._records)


_BUFFER = LogBuffer()


def append_log(level: str, message: str, **details) -> LogRecord:
    record = LogRecord(level=level, message=message, details=details)
    _BUFFER.append(record)
    return record


def list_logs(limit: int | str | None = DEFAULT_LIMIT) -> List[LogRecord]:
    return _BUFFER.list(limit)


def clear_logs():
    _BUFFER.clear()


def log_capacity() -> int:
    return _BUFFER.capacity


def configure_logging(level: str = "INFO", capacity: int = DEFAULT_CAPACITY):
    _BUFFER.resize(capacity)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
    )
