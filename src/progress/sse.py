# src/progress/sse.py — v1
"""Server-Sent Events framing for StreamProgressChannel."""

from __future__ import annotations

import json
from typing import AsyncIterator

from pokefusion.core.models import ProgressEvent
from pokefusion.progress.stream_channel import ChannelClosed, StreamProgressChannel

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

KEEPALIVE_FRAME = ": keep-alive\n\n"


def format_sse(event: ProgressEvent) -> str:
    """Frame one event as ``data: <json>\\n\\n``."""
    payload = event.model_dump(mode="json", exclude_none=True)
    return f"data: {json.dumps(payload, separators=(',', ':'))}\n\n"


async def sse_stream(
    channel: StreamProgressChannel, keepalive_s: float = 15.0,
) -> AsyncIterator[str]:
    """Yield SSE frames until the channel closes.

    Emits a comment frame every ``keepalive_s`` of silence so proxies keep
    the connection open during long stages. If the consumer stops iterating
    (client disconnect), the channel is marked disconnected.
    """
    try:
        while True:
            try:
                event = await channel.next_event(keepalive_s)
            except ChannelClosed:
                return
            if event is None:
                yield KEEPALIVE_FRAME
                continue
            yield format_sse(event)
    finally:
        if not channel.closed:
            channel.disconnect()
