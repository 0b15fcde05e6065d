# src/storage/base_fusion_store.py — v1
"""Abstract store for the credit ledger and the fusion gallery.

Ledger semantics shared by every backend:
  - entries are append-only; balance is the sum of amounts
  - an entry carrying a reference_id is unique on (user_id, reason,
    reference_id); re-appending returns the existing row instead of
    adding a second one
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pokefusion.core.models import CreditLedgerEntry, FusionRecord


class StoreError(Exception):
    """Raised when a backend cannot complete a read or write."""


class BaseFusionStore(ABC):
    """Unified interface for storage backends."""

    # --- Ledger ---

    @abstractmethod
    async def append_entry(self, entry: CreditLedgerEntry) -> CreditLedgerEntry:
        """Append a ledger row (idempotent on reference). Returns the stored row."""

    @abstractmethod
    async def find_entry(
        self, user_id: str, reason: str, reference_id: str,
    ) -> CreditLedgerEntry | None:
        """Look up a referenced ledger row."""

    @abstractmethod
    async def list_entries(self, user_id: str) -> list[CreditLedgerEntry]:
        """All ledger rows for a user, oldest first."""

    async def balance(self, user_id: str) -> int:
        """Current balance: sum of the user's ledger amounts."""
        return sum(e.amount for e in await self.list_entries(user_id))

    # --- Gallery ---

    @abstractmethod
    async def save_fusion(self, record: FusionRecord) -> str:
        """Persist a gallery record and return its id."""

    @abstractmethod
    async def get_fusion(self, record_id: str) -> FusionRecord | None:
        """Retrieve a gallery record by id."""

    @abstractmethod
    async def delete_fusion(self, record_id: str) -> None:
        """Remove a gallery record (no-op if absent)."""

    @abstractmethod
    async def list_fusions(
        self, user_id: str | None = None, limit: int = 50, offset: int = 0,
    ) -> list[FusionRecord]:
        """Gallery records, newest first, optionally for one user."""

    async def find_fusion_for_run(self, user_id: str, correlation_id: str) -> FusionRecord | None:
        """The user's gallery record produced by one run, if any."""
        offset, page = 0, 100
        while True:
            records = await self.list_fusions(user_id=user_id, limit=page, offset=offset)
            for record in records:
                if record.correlation_id == correlation_id:
                    return record
            if len(records) < page:
                return None
            offset += page
