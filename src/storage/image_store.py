# src/storage/image_store.py — v1
"""Local filesystem store for generated images returned as raw bytes.

Providers that answer with base64 payloads (gpt-image-1) need somewhere to
put the bytes so the pipeline can hand a reference to the client.
"""

from __future__ import annotations

import uuid
from pathlib import Path


class LocalImageStore:
    """Write image bytes under a root directory.

    Args:
        root: Directory receiving the files.
        public_base_url: When set, saved images are referenced as
            ``<public_base_url>/<filename>``; otherwise as ``file://`` URIs.
    """

    def __init__(self, root: Path | str, public_base_url: str = "") -> None:
        self._root = Path(root).expanduser()
        self._public_base_url = public_base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    async def save_bytes(self, data: bytes, suffix: str = ".png") -> str:
        """Persist ``data`` and return a reference usable as an image URL."""
        if not data:
            raise ValueError("Refusing to store an empty image")
        self._root.mkdir(parents=True, exist_ok=True)
        name = f"{uuid.uuid4().hex}{suffix}"
        path = self._root / name
        path.write_bytes(data)
        if self._public_base_url:
            return f"{self._public_base_url}/{name}"
        return path.resolve().as_uri()

    def resolve(self, name: str) -> Path | None:
        """Map a stored file name back to its path (None if missing or unsafe)."""
        if "/" in name or "\\" in name or name.startswith("."):
            return None
        path = self._root / name
        return path if path.is_file() else None
