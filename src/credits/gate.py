# src/credits/gate.py — v1
"""Credit gate: balance precondition before a run, debit/persist after it.

Atomicity policy for finalize (persist-then-debit with compensating delete):
  1. persist the gallery record; on failure nothing is debited
  2. for a non-fallback outcome, append one usage entry referenced by the
     run's correlation_id (idempotent, so a retried finalize charges once)
  3. if the debit fails, delete the record persisted in step 1
The artifact is returned in every case; only saved/debited/message change.
"""

from __future__ import annotations

import logging

from pokefusion.core.models import (
    CreditLedgerEntry,
    FusionRecord,
    GenerationRequest,
    PipelineOutcome,
)
from pokefusion.storage.base_fusion_store import BaseFusionStore

logger = logging.getLogger(__name__)

NOT_SAVED_MESSAGE = "Fusion generated but could not be saved"


class PaymentRequiredError(Exception):
    """The user has no credits left for a generation."""

    def __init__(self, user_id: str, balance: int) -> None:
        self.user_id = user_id
        self.balance = balance
        super().__init__(f"Insufficient credits for user {user_id} (balance={balance})")


class LedgerError(Exception):
    """A ledger operation was rejected."""


class RefundRejectedError(LedgerError):
    """The run delivered a saved fusion, so its charge stands."""


class CreditGate:
    """Guards generation runs with the credit ledger.

    Args:
        store: Ledger and gallery backend.
        fusion_cost: Credits consumed by one successful fusion.
    """

    def __init__(self, store: BaseFusionStore, fusion_cost: int = 1) -> None:
        if fusion_cost < 1:
            raise ValueError("fusion_cost must be >= 1")
        self._store = store
        self._cost = fusion_cost

    @property
    def store(self) -> BaseFusionStore:
        return self._store

    async def balance(self, user_id: str) -> int:
        return await self._store.balance(user_id)

    async def has_positive_balance(self, user_id: str) -> bool:
        return await self._store.balance(user_id) > 0

    async def require_balance(self, user_id: str) -> int:
        """Return the balance, or raise when it is not positive.

        Raises:
            PaymentRequiredError: If the balance is <= 0.
        """
        balance = await self._store.balance(user_id)
        if balance <= 0:
            logger.info("Rejecting run for %s: balance %d", user_id, balance)
            raise PaymentRequiredError(user_id, balance)
        return balance

    async def finalize(
        self,
        request: GenerationRequest,
        user_id: str,
        outcome: PipelineOutcome,
    ) -> PipelineOutcome:
        """Persist the outcome and charge for it. Never raises."""
        record = FusionRecord.from_outcome(request, user_id, outcome)

        try:
            record_id = await self._store.save_fusion(record)
        except Exception:
            logger.exception("Failed to persist fusion %s", record.record_id)
            return outcome.model_copy(update={
                "saved": False,
                "debited": False,
                "message": _join(outcome.message, NOT_SAVED_MESSAGE),
            })

        if outcome.is_fallback:
            logger.info("Fallback outcome saved as %s; no credits charged", record_id)
            return outcome.model_copy(update={"record_id": record_id, "saved": True})

        try:
            await self._store.append_entry(CreditLedgerEntry(
                user_id=user_id,
                amount=-self._cost,
                reason="usage",
                description=f"Fusion of {request.name_1} and {request.name_2}",
                reference_id=request.correlation_id,
            ))
        except Exception:
            logger.exception("Debit failed for %s; removing fusion %s", user_id, record_id)
            try:
                await self._store.delete_fusion(record_id)
            except Exception:
                logger.exception("Compensating delete failed for fusion %s", record_id)
            return outcome.model_copy(update={
                "saved": False,
                "debited": False,
                "message": _join(outcome.message, NOT_SAVED_MESSAGE),
            })

        logger.info("Fusion %s saved; charged %d credit(s) to %s", record_id, self._cost, user_id)
        return outcome.model_copy(update={"record_id": record_id, "saved": True, "debited": True})

    async def refund(self, user_id: str, reference_id: str) -> CreditLedgerEntry:
        """Return the credits of a charged run that left no saved fusion.

        A charge only stands alongside a gallery record, so this covers runs
        whose record was lost after the debit landed.

        Raises:
            LedgerError: If no usage entry exists for the reference.
            RefundRejectedError: If the run's fusion is still in the gallery.
        """
        usage = await self._store.find_entry(user_id, "usage", reference_id)
        if usage is None:
            raise LedgerError(f"No charge recorded for run {reference_id}")
        record = await self._store.find_fusion_for_run(user_id, reference_id)
        if record is not None and not record.is_fallback:
            logger.info("Refund refused for %s: fusion %s is saved", reference_id, record.record_id)
            raise RefundRejectedError(f"Run {reference_id} produced saved fusion {record.record_id}")
        return await self._store.append_entry(CreditLedgerEntry(
            user_id=user_id,
            amount=-usage.amount,
            reason="refund",
            description=f"Refund for run {reference_id}",
            reference_id=reference_id,
        ))

    async def grant(
        self,
        user_id: str,
        amount: int,
        reason: str = "grant",
        description: str = "",
        reference_id: str | None = None,
    ) -> CreditLedgerEntry:
        """Add credits to a user.

        Raises:
            LedgerError: If amount is not positive or reason is not a credit.
        """
        if amount <= 0:
            raise LedgerError("Granted amount must be positive")
        if reason not in ("grant", "purchase"):
            raise LedgerError(f"Cannot grant credits with reason {reason!r}")
        return await self._store.append_entry(CreditLedgerEntry(
            user_id=user_id,
            amount=amount,
            reason=reason,  # type: ignore[arg-type]
            description=description,
            reference_id=reference_id,
        ))


def _join(first: str | None, second: str) -> str:
    return f"{first}; {second}" if first else second
