# src/providers/image_utils.py — v1
"""Helpers for image references passed between providers."""

from __future__ import annotations

import base64
import re
from pathlib import Path

import httpx

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/=\s]+$")
_DATA_URI_RE = re.compile(r"^data:(?P<media>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)


def prepare_image_reference(ref: str) -> str:
    """Normalize an image reference for providers that accept URLs.

    URLs and data URIs pass through; bare base64 gains a PNG data-URI
    prefix; anything else is returned unchanged.
    """
    if ref.startswith(("http://", "https://", "data:")):
        return ref
    if len(ref) > 64 and _BASE64_RE.match(ref):
        return f"data:image/png;base64,{ref}"
    return ref


def decode_data_uri(ref: str) -> tuple[bytes, str] | None:
    """Return (bytes, media_type) for a base64 data URI, else None."""
    match = _DATA_URI_RE.match(ref)
    if match is None:
        return None
    return base64.b64decode(match.group("data")), match.group("media")


async def fetch_image_bytes(ref: str, timeout_s: float = 30.0) -> bytes:
    """Load image bytes from a URL, data URI or local path."""
    decoded = decode_data_uri(ref)
    if decoded is not None:
        return decoded[0]
    if ref.startswith(("http://", "https://")):
        async with httpx.AsyncClient(timeout=timeout_s, follow_redirects=True) as client:
            resp = await client.get(ref)
            resp.raise_for_status()
            return resp.content
    if ref.startswith("file://"):
        ref = ref[len("file://"):]
    return Path(ref).expanduser().read_bytes()
