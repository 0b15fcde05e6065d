# src/storage/redis_store.py — v1
"""Redis-based store (STORE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for multi-instance deployments sharing one ledger.

Keys (user ids and references percent-encoded, so ':' never splits a key):
  pokefusion:ledger:<user_id>                     list of entry JSON
  pokefusion:ledger-ref:<user_id>:<reason>:<ref>  idempotency guard
  pokefusion:fusion:<record_id>                   record JSON
  pokefusion:fusions:__index__                    set of record ids
"""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

from pokefusion.core.models import CreditLedgerEntry, FusionRecord
from pokefusion.storage.base_fusion_store import BaseFusionStore

logger = logging.getLogger(__name__)

_PREFIX = "pokefusion:"
_FUSION_INDEX = f"{_PREFIX}fusions:__index__"

# KEYS[1]=ref key, KEYS[2]=ledger list, ARGV[1]=entry JSON.
# Claims the reference and appends in one step; returns the prior entry on a repeat.
_CLAIM_AND_PUSH = """
if redis.call('SET', KEYS[1], ARGV[1], 'NX') then
    redis.call('RPUSH', KEYS[2], ARGV[1])
    return false
end
return redis.call('GET', KEYS[1])
"""


def _part(value: str) -> str:
    return quote(value, safe="")


def _ledger_key(user_id: str) -> str:
    return f"{_PREFIX}ledger:{_part(user_id)}"


def _ref_key(user_id: str, reason: str, reference_id: str) -> str:
    return f"{_PREFIX}ledger-ref:{_part(user_id)}:{reason}:{_part(reference_id)}"


def _fusion_key(record_id: str) -> str:
    return f"{_PREFIX}fusion:{record_id}"


class RedisFusionStore(BaseFusionStore):
    """Redis-backed store for distributed deployments."""

    def __init__(self, redis_url: str) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._bind(redis.Redis.from_url(redis_url, decode_responses=True))

    def _bind(self, client: Any) -> None:
        self._client = client
        self._claim_and_push = client.register_script(_CLAIM_AND_PUSH)

    # --- Ledger ---

    async def append_entry(self, entry: CreditLedgerEntry) -> CreditLedgerEntry:
        payload = entry.model_dump_json()
        if entry.reference_id is not None:
            existing = self._claim_and_push(
                keys=[_ref_key(entry.user_id, entry.reason, entry.reference_id), _ledger_key(entry.user_id)],
                args=[payload],
            )
            if existing:
                logger.info(
                    "Ledger entry %s/%s already recorded for %s",
                    entry.reason, entry.reference_id, entry.user_id,
                )
                return CreditLedgerEntry(**json.loads(existing))
            return entry
        self._client.rpush(_ledger_key(entry.user_id), payload)
        return entry

    async def find_entry(
        self, user_id: str, reason: str, reference_id: str,
    ) -> CreditLedgerEntry | None:
        data = self._client.get(_ref_key(user_id, reason, reference_id))
        if data is None:
            return None
        return CreditLedgerEntry(**json.loads(data))

    async def list_entries(self, user_id: str) -> list[CreditLedgerEntry]:
        entries: list[CreditLedgerEntry] = []
        for raw in self._client.lrange(_ledger_key(user_id), 0, -1):
            try:
                entries.append(CreditLedgerEntry(**json.loads(raw)))
            except Exception as e:
                logger.warning("Skipping unreadable ledger entry for %s: %s", user_id, e)
        return entries

    # --- Gallery ---

    async def save_fusion(self, record: FusionRecord) -> str:
        self._client.set(_fusion_key(record.record_id), record.model_dump_json())
        self._client.sadd(_FUSION_INDEX, record.record_id)
        return record.record_id

    async def get_fusion(self, record_id: str) -> FusionRecord | None:
        data = self._client.get(_fusion_key(record_id))
        if data is None:
            return None
        try:
            return FusionRecord(**json.loads(data))
        except Exception as e:
            logger.warning("Failed to deserialize fusion %s: %s", record_id, e)
            return None

    async def delete_fusion(self, record_id: str) -> None:
        self._client.delete(_fusion_key(record_id))
        self._client.srem(_FUSION_INDEX, record_id)

    async def list_fusions(
        self, user_id: str | None = None, limit: int = 50, offset: int = 0,
    ) -> list[FusionRecord]:
        records: list[FusionRecord] = []
        for record_id in self._client.smembers(_FUSION_INDEX):
            record = await self.get_fusion(record_id)
            if record is not None and (user_id is None or record.user_id == user_id):
                records.append(record)
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[offset:offset + limit]

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()
