# src/logging/logger.py — v1
"""JSON and text formatters plus the one-shot ``setup_logging`` entry point.

Modules log through ``logging.getLogger(__name__)``; everything under the
``pokefusion`` namespace inherits the handlers installed here. Each record
is stamped with the current run context (correlation_id, user_id, stage)
so one fusion run can be followed across stages.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from pokefusion.logging.context import get_context

ROOT_LOGGER = "pokefusion"

# Provider SDKs log every HTTP request at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "replicate")


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _record_time(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = get_context().as_dict()
        if context:
            payload["context"] = context
        data = getattr(record, "data", None)
        if data:
            payload["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Single-line format for terminals: time, level, logger, run, stage."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        head = f"{_record_time(record):%Y-%m-%d %H:%M:%S} [{record.levelname:8s}] {record.name}"
        if ctx.correlation_id:
            head += f" [{ctx.correlation_id[:12]}]"
        if ctx.stage:
            retry = f" #{ctx.attempt}" if ctx.attempt and ctx.attempt > 1 else ""
            head += f" ({ctx.stage}{retry})"
        line = f"{head} - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> logging.Logger:
    """Install handlers on the package logger. Safe to call repeatedly.

    Args:
        level: Log level name; unknown names fall back to INFO.
        log_format: "json" or "text".
        log_file: Optional file target in addition to stdout.
        rotation: Size ("10MB") or interval ("daily") for file rotation.
        retention: Number of rotated files to keep.

    Returns:
        The configured ``pokefusion`` logger.
    """
    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        from pokefusion.logging.handlers import create_file_handler

        handlers.append(create_file_handler(log_file, rotation=rotation, retention=retention))

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for old in root.handlers:
        old.close()
    root.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root
