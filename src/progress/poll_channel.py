# src/progress/poll_channel.py — v1
"""Pull-based progress channel for clients that cannot hold a stream open.

Clients poll with a cursor (the sequence of the next event they want) and
receive every event from that point on, plus the outcome once the run is
terminal. RunRegistry keeps channels addressable by correlation id.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from pydantic import BaseModel, Field

from pokefusion.core.models import ProgressEvent
from pokefusion.progress.base_channel import BaseProgressChannel

logger = logging.getLogger(__name__)


class PollSnapshot(BaseModel):
    """Result of one poll call."""

    events: list[ProgressEvent] = Field(default_factory=list)
    next_cursor: int = 0
    done: bool = False
    outcome: dict[str, Any] | None = None


class PollProgressChannel(BaseProgressChannel):
    """Buffers the full transcript; readers poll it by cursor."""

    def __init__(self) -> None:
        super().__init__()
        self._terminal = asyncio.Event()
        self._closed_at: float | None = None

    def _deliver(self, event: ProgressEvent) -> None:
        # Transcript already appended by the base class
        return None

    def _on_close(self) -> None:
        self._closed_at = time.monotonic()
        self._terminal.set()

    @property
    def closed_at(self) -> float | None:
        return self._closed_at

    def poll(self, cursor: int = 0) -> PollSnapshot:
        """Return events with sequence >= cursor."""
        cursor = max(cursor, 0)
        events = self._events[cursor:]
        outcome = None
        if self.closed:
            terminal = next((e for e in reversed(self._events) if e.is_terminal), None)
            if terminal is not None:
                outcome = terminal.data
        return PollSnapshot(
            events=list(events),
            next_cursor=len(self._events),
            done=self.closed,
            outcome=outcome,
        )

    async def wait_until_terminal(self, timeout_s: float | None = None) -> PollSnapshot:
        """Block until the channel closes (or timeout), then return everything."""
        try:
            await asyncio.wait_for(self._terminal.wait(), timeout=timeout_s)
        except asyncio.TimeoutError:
            logger.debug("wait_until_terminal timed out after %ss", timeout_s)
        return self.poll(0)


class RunRegistry:
    """correlation_id -> PollProgressChannel, with TTL eviction of finished runs."""

    def __init__(self, ttl_s: float = 600.0) -> None:
        self._ttl_s = ttl_s
        self._channels: dict[str, PollProgressChannel] = {}

    def create(self, correlation_id: str) -> PollProgressChannel:
        self.evict_expired()
        if correlation_id in self._channels:
            raise KeyError(f"Run '{correlation_id}' already registered")
        channel = PollProgressChannel()
        self._channels[correlation_id] = channel
        return channel

    def get(self, correlation_id: str) -> PollProgressChannel | None:
        self.evict_expired()
        return self._channels.get(correlation_id)

    def evict_expired(self, now: float | None = None) -> int:
        now = time.monotonic() if now is None else now
        expired = [
            cid
            for cid, ch in self._channels.items()
            if ch.closed_at is not None and now - ch.closed_at > self._ttl_s
        ]
        for cid in expired:
            del self._channels[cid]
        if expired:
            logger.debug("Evicted %d finished runs", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._channels)
