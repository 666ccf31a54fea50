"""Structured logging configuration.

Records are written as JSON lines. The engine binds `instance_id`,
`workflow_id` and `step_id` with `log_context` while a step runs, and
`CorrelationFilter` copies them onto every record emitted inside it, so logs
from actions, notifiers and AI calls can be tied back to their instance
without each call site passing `extra=`.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# Attributes every LogRecord carries; anything else arrived through `extra=`
# or the correlation filter.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}

_correlation: ContextVar[dict[str, Any]] = ContextVar("workflow_log_context", default={})


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Attach correlation fields to every record logged inside the block.

    Nested blocks add to the outer fields. asyncio tasks inherit the fields
    that were bound when they were created.
    """
    token = _correlation.set({**_correlation.get(), **fields})
    try:
        yield
    finally:
        _correlation.reset(token)


class CorrelationFilter(logging.Filter):
    """Copy the bound correlation fields onto records.

    Values passed explicitly through `extra=` take precedence.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        for key, value in _correlation.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """Formats a record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str) -> None:
    """Send JSON lines with correlation fields to stdout, replacing existing handlers."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(CorrelationFilter())
    root.addHandler(handler)
    root.setLevel(level.upper())

    # The HTTP client stack behind the AI service is noisy at DEBUG.
    for name in ("openai", "httpx"):
        logging.getLogger(name).setLevel(max(root.level, logging.INFO))
