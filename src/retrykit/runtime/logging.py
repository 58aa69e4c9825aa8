"""Logging setup for the ``retrykit`` logger hierarchy.

Library modules only call ``logging.getLogger("retrykit...")``; nothing is
printed until an application opts in:

    >>> from retrykit.runtime.logging import configure_logging
    >>> configure_logging("DEBUG")            # human-readable, stderr
    >>> configure_logging(fmt="json")         # JSON lines for aggregation

Defaults come from ``LoggingSettings`` (RETRYKIT_LOG_LEVEL, RETRYKIT_LOG_FORMAT).
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

import orjson

from retrykit.foundation.config import get_settings

ROOT_LOGGER = "retrykit"
_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """JSON Lines output for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload).decode()


def configure_logging(
    level: str | None = None,
    fmt: str | None = None,
    *,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Install a single stream handler on the ``retrykit`` logger.

    Args:
        level: Log level name; defaults to LoggingSettings.level
        fmt: "text" or "json"; defaults to LoggingSettings.format
        stream: Output stream (default: stderr)

    Raises:
        ValueError: On an unknown format
    """
    settings = get_settings().logging
    level = (level or settings.level).upper()
    fmt = fmt or settings.format

    match fmt:
        case "text": formatter: logging.Formatter = logging.Formatter(_TEXT_FORMAT)
        case "json": formatter = JsonFormatter()
        case _: raise ValueError(f"Unknown format: {fmt}. Use 'text' or 'json'")

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level, logging.WARNING))
    logger.handlers.clear()
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False
    return logger
