# src/logging/context.py — v1
"""Run-scoped logging context.

One immutable LogContext per asyncio task: the orchestrator binds the run
(correlation_id, user_id), the stage runner binds the stage, and the retry
loop bumps the attempt number. Tasks spawned inside a run (stage timeouts
use wait_for) inherit a copy, so their changes never leak back.
"""

from __future__ import annotations

import contextvars
from dataclasses import asdict, dataclass, replace
from typing import Any


@dataclass(frozen=True)
class LogContext:
    """Snapshot attached to every log record."""

    correlation_id: str | None = None
    user_id: str | None = None
    stage: str | None = None
    attempt: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Non-None fields, for JSON log injection."""
        return {k: v for k, v in asdict(self).items() if v is not None}


_EMPTY = LogContext()
_current: contextvars.ContextVar[LogContext] = contextvars.ContextVar(
    "pokefusion_log_context", default=_EMPTY
)


def get_context() -> LogContext:
    return _current.get()


def set_run_context(correlation_id: str, user_id: str | None = None) -> None:
    """Start a run: previous stage and attempt are dropped."""
    _current.set(LogContext(correlation_id=correlation_id, user_id=user_id))


def set_stage_context(stage: str | None) -> None:
    """Enter (or leave, with None) a stage; the attempt counter restarts."""
    _current.set(replace(_current.get(), stage=stage, attempt=None))


def set_attempt(attempt: int | None) -> None:
    """Record the 1-based provider attempt within the current stage."""
    _current.set(replace(_current.get(), attempt=attempt))


def clear_context() -> None:
    _current.set(_EMPTY)
