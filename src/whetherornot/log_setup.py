"""JSON-lines console logging; lookup context passed via ``extra=`` lands in each line."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import IO, Any

from .redaction import sanitize_for_logging, sanitize_text

_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_text(record.getMessage()),
        }
        extra = {
            key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS
        }
        if extra:
            event["context"] = sanitize_for_logging(extra)
        if record.exc_info:
            event["exception"] = sanitize_text(self.formatException(record.exc_info))
        return json.dumps(event, default=str, ensure_ascii=False)


def setup_logger(
    name: str = "whetherornot",
    level: int | str = logging.INFO,
    *,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Configure ``name`` once with a JSON stderr handler; later calls only set the level."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    if not logger.handlers:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(JsonConsoleFormatter())
        logger.addHandler(handler)
    return logger
