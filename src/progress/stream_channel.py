# src/progress/stream_channel.py — v1
"""Push-based progress channel backed by an asyncio queue.

The producer (orchestrator) emits; one subscriber iterates subscribe()
until the channel closes. A subscriber that goes away calls disconnect():
the run keeps going and further emits are dropped quietly.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from pokefusion.core.models import ProgressEvent
from pokefusion.progress.base_channel import BaseProgressChannel

logger = logging.getLogger(__name__)

_CLOSED = object()


class ChannelClosed(Exception):
    """Raised by next_event() once the channel has closed."""


class StreamProgressChannel(BaseProgressChannel):
    """FIFO event stream to a single remote subscriber."""

    def __init__(self) -> None:
        super().__init__()
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._disconnected = False

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    def disconnect(self) -> None:
        """Subscriber is gone; stop delivering but let the run finish."""
        if not self._disconnected:
            logger.info("Progress subscriber disconnected; run continues")
        self._disconnected = True

    def _deliver(self, event: ProgressEvent) -> None:
        if self._disconnected:
            return
        self._queue.put_nowait(event)

    def _on_close(self) -> None:
        self._queue.put_nowait(_CLOSED)

    async def subscribe(self) -> AsyncIterator[ProgressEvent]:
        """Yield events in emission order until the channel closes."""
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            assert isinstance(item, ProgressEvent)
            yield item

    async def next_event(self, timeout_s: float) -> ProgressEvent | None:
        """Wait up to ``timeout_s`` for the next event.

        Returns None on timeout. Raises ChannelClosed once closed.
        """
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout_s)
        except asyncio.TimeoutError:
            return None
        if item is _CLOSED:
            raise ChannelClosed
        assert isinstance(item, ProgressEvent)
        return item
