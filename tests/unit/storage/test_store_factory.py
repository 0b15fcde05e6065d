# tests/unit/storage/test_store_factory.py — v1
"""Tests for storage/store_factory.py and storage/image_store.py."""

from __future__ import annotations

import base64

import pytest

from pokefusion.config.settings import Settings
from pokefusion.storage.image_store import LocalImageStore
from pokefusion.storage.json_store import JsonFusionStore
from pokefusion.storage.sqlite_store import SqliteFusionStore
from pokefusion.storage.store_factory import create_store


class TestCreateStore:
    def test_json_backend(self, tmp_path):
        s = Settings(_env_file=None, store_backend="json", store_root=tmp_path)
        assert isinstance(create_store(s), JsonFusionStore)

    def test_sqlite_backend(self, tmp_path):
        s = Settings(_env_file=None, store_backend="sqlite", store_root=tmp_path)
        store = create_store(s)
        assert isinstance(store, SqliteFusionStore)
        assert (tmp_path / "pokefusion.db").exists()
        store.close()

    def test_default_is_json(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert isinstance(create_store(None), JsonFusionStore)


class TestLocalImageStore:
    @pytest.mark.asyncio
    async def test_save_returns_file_uri(self, tmp_path):
        store = LocalImageStore(tmp_path / "img")
        ref = await store.save_bytes(b"\x89PNG fake", suffix=".png")
        assert ref.startswith("file://")
        assert ref.endswith(".png")
        saved = list((tmp_path / "img").iterdir())
        assert len(saved) == 1 and saved[0].read_bytes() == b"\x89PNG fake"

    @pytest.mark.asyncio
    async def test_public_base_url(self, tmp_path):
        store = LocalImageStore(tmp_path, public_base_url="https://cdn.example/fusions/")
        ref = await store.save_bytes(base64.b64decode("aGVsbG8="))
        assert ref.startswith("https://cdn.example/fusions/")
        name = ref.rsplit("/", 1)[1]
        assert store.resolve(name) is not None

    @pytest.mark.asyncio
    async def test_empty_bytes_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            await LocalImageStore(tmp_path).save_bytes(b"")

    def test_resolve_rejects_traversal(self, tmp_path):
        store = LocalImageStore(tmp_path)
        assert store.resolve("../etc/passwd") is None
        assert store.resolve(".hidden") is None
