# src/logging/handlers.py — v1
"""File handlers for the service log.

``rotation`` is either a size threshold ("10MB", "512KB") or a time
interval ("hourly", "daily", "midnight", "weekly"). Long-running API
servers usually want the daily variant; the CLI keeps the size default.
"""

from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path

_SIZE_RE = re.compile(r"^(\d+)\s*([KMG])B$", re.IGNORECASE)
_SHIFT = {"K": 10, "M": 20, "G": 30}

# interval keyword -> TimedRotatingFileHandler ``when``
_INTERVALS = {
    "hourly": "H",
    "daily": "D",
    "midnight": "midnight",
    "weekly": "W0",
}


def parse_rotation(rotation: str) -> tuple[str, int | str]:
    """Classify a rotation setting.

    Returns:
        ``("size", n_bytes)`` or ``("time", when)``.

    Raises:
        ValueError: If the value is neither a size nor a known interval.
    """
    text = rotation.strip()
    if text.lower() in _INTERVALS:
        return "time", _INTERVALS[text.lower()]
    match = _SIZE_RE.match(text)
    if not match:
        raise ValueError(
            f"Invalid log rotation {rotation!r}. Use a size like '10MB' "
            f"or one of: {', '.join(_INTERVALS)}"
        )
    return "size", int(match.group(1)) << _SHIFT[match.group(2).upper()]


def create_file_handler(
    log_file: str,
    rotation: str = "10MB",
    retention: int = 30,
) -> logging.Handler:
    """Build the rotating file handler described by ``rotation``.

    Args:
        log_file: Target path. ``~`` is expanded and parent dirs created.
        rotation: Size threshold or interval keyword.
        retention: Number of rotated files kept on disk.
    """
    kind, value = parse_rotation(rotation)
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    if kind == "time":
        return TimedRotatingFileHandler(
            filename=str(path), when=str(value), backupCount=retention, encoding="utf-8",
        )
    return RotatingFileHandler(
        filename=str(path), maxBytes=int(value), backupCount=retention, encoding="utf-8",
    )
