# src/progress/base_channel.py — v1
"""Abstract progress channel: ordered, append-only stage events for one run.

Contract shared by the push (stream) and pull (poll) implementations:
  - events are delivered in emission order, each stamped with a sequence
  - close() happens once; later close() calls are no-ops
  - emit() after close or after the subscriber is gone is a silent no-op
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from pokefusion.core.models import ProgressEvent

logger = logging.getLogger(__name__)


class BaseProgressChannel(ABC):
    """Single-producer, single-consumer stage event channel."""

    def __init__(self) -> None:
        self._events: list[ProgressEvent] = []
        self._closed = False
        self._terminal_sent = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def events(self) -> list[ProgressEvent]:
        """Transcript of every event accepted so far, in order."""
        return list(self._events)

    def emit(self, event: ProgressEvent) -> None:
        """Push one event. Never raises."""
        if self._closed:
            logger.debug("Dropping %s/%s: channel closed", event.stage, event.status)
            return
        if event.is_terminal:
            if self._terminal_sent:
                logger.warning("Dropping duplicate terminal event")
                return
            self._terminal_sent = True

        stamped = event.model_copy(update={"sequence": len(self._events)})
        self._events.append(stamped)
        try:
            self._deliver(stamped)
        except Exception:
            logger.exception("Progress delivery failed for %s/%s", event.stage, event.status)

    def close(self) -> None:
        """Close the channel exactly once."""
        if self._closed:
            return
        self._closed = True
        try:
            self._on_close()
        except Exception:
            logger.exception("Progress channel close hook failed")

    @abstractmethod
    def _deliver(self, event: ProgressEvent) -> None:
        """Hand one stamped event to the transport."""

    def _on_close(self) -> None:
        """Transport-specific close hook."""


class NullProgressChannel(BaseProgressChannel):
    """Records the transcript without delivering it anywhere."""

    def _deliver(self, event: ProgressEvent) -> None:
        return None
