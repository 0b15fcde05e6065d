# src/storage/sqlite_store.py — v1
"""SQLite-based store (STORE_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency. The unique index on
(user_id, reason, reference_id) makes referenced ledger appends idempotent
at the database level.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from pokefusion.core.models import CreditLedgerEntry, FusionRecord
from pokefusion.storage.base_fusion_store import BaseFusionStore, StoreError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS ledger_entries (
    entry_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    amount INTEGER NOT NULL,
    reason TEXT NOT NULL,
    reference_id TEXT,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_ledger_user ON ledger_entries(user_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_ledger_ref
    ON ledger_entries(user_id, reason, reference_id)
    WHERE reference_id IS NOT NULL;

CREATE TABLE IF NOT EXISTS fusions (
    record_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_fusions_user ON fusions(user_id, created_at);
"""


class SqliteFusionStore(BaseFusionStore):
    """SQLite-backed store for single-host deployments."""

    def __init__(self, db_path: Path | str) -> None:
        if str(db_path) == ":memory:":
            target = ":memory:"
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            target = str(path)
        self._conn = sqlite3.connect(target, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    # --- Ledger ---

    async def append_entry(self, entry: CreditLedgerEntry) -> CreditLedgerEntry:
        try:
            self._conn.execute(
                """INSERT INTO ledger_entries
                   (entry_id, user_id, amount, reason, reference_id, data, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    entry.entry_id,
                    entry.user_id,
                    entry.amount,
                    entry.reason,
                    entry.reference_id,
                    entry.model_dump_json(),
                    entry.created_at.isoformat(),
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError:
            self._conn.rollback()
            if entry.reference_id is not None:
                existing = await self.find_entry(entry.user_id, entry.reason, entry.reference_id)
                if existing is not None:
                    logger.info(
                        "Ledger entry %s/%s already recorded for %s",
                        entry.reason, entry.reference_id, entry.user_id,
                    )
                    return existing
            raise StoreError(f"Duplicate ledger entry {entry.entry_id}")
        except sqlite3.Error as e:
            raise StoreError(f"Failed to append ledger entry: {e}") from e
        return entry

    async def find_entry(
        self, user_id: str, reason: str, reference_id: str,
    ) -> CreditLedgerEntry | None:
        row = self._conn.execute(
            "SELECT data FROM ledger_entries WHERE user_id = ? AND reason = ? AND reference_id = ?",
            (user_id, reason, reference_id),
        ).fetchone()
        return CreditLedgerEntry(**json.loads(row[0])) if row else None

    async def list_entries(self, user_id: str) -> list[CreditLedgerEntry]:
        cursor = self._conn.execute(
            "SELECT data FROM ledger_entries WHERE user_id = ? ORDER BY created_at, rowid",
            (user_id,),
        )
        return [CreditLedgerEntry(**json.loads(row[0])) for row in cursor.fetchall()]

    async def balance(self, user_id: str) -> int:
        row = self._conn.execute(
            "SELECT COALESCE(SUM(amount), 0) FROM ledger_entries WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        return int(row[0])

    # --- Gallery ---

    async def save_fusion(self, record: FusionRecord) -> str:
        try:
            self._conn.execute(
                """INSERT OR REPLACE INTO fusions (record_id, user_id, data, created_at)
                   VALUES (?, ?, ?, ?)""",
                (
                    record.record_id,
                    record.user_id,
                    record.model_dump_json(),
                    record.created_at.isoformat(),
                ),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to save fusion {record.record_id}: {e}") from e
        return record.record_id

    async def get_fusion(self, record_id: str) -> FusionRecord | None:
        row = self._conn.execute(
            "SELECT data FROM fusions WHERE record_id = ?", (record_id,)
        ).fetchone()
        if row is None:
            return None
        try:
            return FusionRecord(**json.loads(row[0]))
        except Exception as e:
            logger.warning("Failed to deserialize fusion %s: %s", record_id, e)
            return None

    async def delete_fusion(self, record_id: str) -> None:
        self._conn.execute("DELETE FROM fusions WHERE record_id = ?", (record_id,))
        self._conn.commit()

    async def list_fusions(
        self, user_id: str | None = None, limit: int = 50, offset: int = 0,
    ) -> list[FusionRecord]:
        if user_id is None:
            cursor = self._conn.execute(
                "SELECT data FROM fusions ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (limit, offset),
            )
        else:
            cursor = self._conn.execute(
                "SELECT data FROM fusions WHERE user_id = ? ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (user_id, limit, offset),
            )
        return [FusionRecord(**json.loads(row[0])) for row in cursor.fetchall()]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
