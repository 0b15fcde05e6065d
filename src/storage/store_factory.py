# src/storage/store_factory.py — v1
"""Factory for ledger/gallery store instantiation."""

from __future__ import annotations

from pokefusion.config.settings import Settings
from pokefusion.storage.base_fusion_store import BaseFusionStore


class UnsupportedBackendError(ValueError):
    """Raised when STORE_BACKEND names an unknown backend."""


def create_store(settings: Settings | None = None) -> BaseFusionStore:
    """Instantiate the configured store backend.

    Args:
        settings: Application settings. Defaults to the JSON backend.

    Returns:
        Configured BaseFusionStore implementation.
    """
    backend = "json" if settings is None else settings.store_backend
    store_root = "data/store" if settings is None else str(settings.store_root)

    if backend == "json":
        from pokefusion.storage.json_store import JsonFusionStore
        return JsonFusionStore(root=store_root)

    if backend == "sqlite":
        from pokefusion.storage.sqlite_store import SqliteFusionStore
        return SqliteFusionStore(db_path=f"{store_root}/pokefusion.db")

    if backend == "redis":
        from pokefusion.storage.redis_store import RedisFusionStore
        if settings is None or not settings.store_redis_url:
            raise ValueError(
                "STORE_REDIS_URL must be set when STORE_BACKEND=redis"
            )
        return RedisFusionStore(redis_url=settings.store_redis_url)

    raise UnsupportedBackendError(f"Unsupported store backend: {backend!r}")
