# src/storage/json_store.py — v1
"""JSON file-based store (default STORE_BACKEND=json).

Layout under STORE_ROOT:
  ledger/<user_id>.jsonl   one ledger entry per line, append-only
                           (ids percent-encoded into file names)
  fusions/<record_id>.json one gallery record per file
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from urllib.parse import quote

from pokefusion.core.models import CreditLedgerEntry, FusionRecord
from pokefusion.storage.base_fusion_store import BaseFusionStore, StoreError

logger = logging.getLogger(__name__)


def _filename(key: str) -> str:
    # Percent-encoding is injective, so distinct ids never share a file
    return quote(key, safe="")


class JsonFusionStore(BaseFusionStore):
    """File-based store using JSON files."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser()
        self._ledger_dir = self._root / "ledger"
        self._fusion_dir = self._root / "fusions"
        self._ledger_dir.mkdir(parents=True, exist_ok=True)
        self._fusion_dir.mkdir(parents=True, exist_ok=True)

    # --- Ledger ---

    async def append_entry(self, entry: CreditLedgerEntry) -> CreditLedgerEntry:
        if entry.reference_id is not None:
            existing = await self.find_entry(entry.user_id, entry.reason, entry.reference_id)
            if existing is not None:
                logger.info(
                    "Ledger entry %s/%s already recorded for %s",
                    entry.reason, entry.reference_id, entry.user_id,
                )
                return existing
        path = self._ledger_path(entry.user_id)
        try:
            with path.open("a", encoding="utf-8") as fh:
                fh.write(entry.model_dump_json() + "\n")
        except OSError as e:
            raise StoreError(f"Failed to append ledger entry for {entry.user_id}: {e}") from e
        return entry

    async def find_entry(
        self, user_id: str, reason: str, reference_id: str,
    ) -> CreditLedgerEntry | None:
        for entry in await self.list_entries(user_id):
            if entry.reason == reason and entry.reference_id == reference_id:
                return entry
        return None

    async def list_entries(self, user_id: str) -> list[CreditLedgerEntry]:
        path = self._ledger_path(user_id)
        if not path.exists():
            return []
        entries: list[CreditLedgerEntry] = []
        for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
            if not line.strip():
                continue
            try:
                entry = CreditLedgerEntry(**json.loads(line))
            except Exception as e:
                # A torn final line from a crashed write must not block the ledger
                logger.warning("Skipping unreadable ledger line %s:%d: %s", path.name, line_no, e)
                continue
            if entry.user_id != user_id:
                logger.warning("Ignoring entry of %s found in ledger of %s", entry.user_id, user_id)
                continue
            entries.append(entry)
        return entries

    # --- Gallery ---

    async def save_fusion(self, record: FusionRecord) -> str:
        path = self._fusion_path(record.record_id)
        try:
            path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Failed to save fusion {record.record_id}: {e}") from e
        return record.record_id

    async def get_fusion(self, record_id: str) -> FusionRecord | None:
        path = self._fusion_path(record_id)
        if not path.exists():
            return None
        try:
            return FusionRecord(**json.loads(path.read_text(encoding="utf-8")))
        except Exception as e:
            logger.warning("Failed to read fusion %s: %s", record_id, e)
            return None

    async def delete_fusion(self, record_id: str) -> None:
        path = self._fusion_path(record_id)
        if path.exists():
            path.unlink()

    async def list_fusions(
        self, user_id: str | None = None, limit: int = 50, offset: int = 0,
    ) -> list[FusionRecord]:
        records: list[FusionRecord] = []
        for path in self._fusion_dir.glob("*.json"):
            try:
                record = FusionRecord(**json.loads(path.read_text(encoding="utf-8")))
            except Exception:
                continue
            if user_id is None or record.user_id == user_id:
                records.append(record)
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[offset:offset + limit]

    def _ledger_path(self, user_id: str) -> Path:
        return self._ledger_dir / f"{_filename(user_id)}.jsonl"

    def _fusion_path(self, record_id: str) -> Path:
        return self._fusion_dir / f"{_filename(record_id)}.json"
