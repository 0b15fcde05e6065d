# src/pipeline/orchestrator.py — v1
"""Fusion orchestrator — one generation run from request to terminal event.

Run lifecycle:
  PENDING    balance precondition (PaymentRequiredError, no events emitted)
  STAGE_1..N stages in config order, short-circuit on first failure
  SUCCEEDED  every stage produced output; the last image is the artifact
  FALLBACK   anything else; the first source image is the artifact
then finalize (persist + debit) and one terminal ``pipeline/completed`` event.

Only PaymentRequiredError escapes ``run``. Stage, plan and persistence
errors are folded into the outcome.
"""

from __future__ import annotations

import logging
import time

from pokefusion.core.models import GenerationRequest, PipelineOutcome, ProgressEvent, StageResult
from pokefusion.credits.gate import CreditGate
from pokefusion.logging.context import clear_context, set_run_context
from pokefusion.pipeline.config import PipelineConfig
from pokefusion.pipeline.fallback import resolve
from pokefusion.pipeline.stage_runner import StageRunner
from pokefusion.pipeline.stages import build_stages, initial_artifact
from pokefusion.progress.base_channel import BaseProgressChannel, NullProgressChannel
from pokefusion.providers.provider_factory import ProviderSet
from pokefusion.storage.base_fusion_store import BaseFusionStore

logger = logging.getLogger(__name__)


class FusionOrchestrator:
    """Drive generation runs through the configured stage plan.

    Args:
        config: Stage plan, timeouts and retry budgets.
        providers: Provider instances backing the stages.
        store: Ledger and gallery backend.
        runner: Optional StageRunner (defaults to one honouring config jitter).
    """

    def __init__(
        self,
        config: PipelineConfig,
        providers: ProviderSet,
        store: BaseFusionStore,
        runner: StageRunner | None = None,
    ) -> None:
        self._config = config
        self._providers = providers
        self._gate = CreditGate(store, fusion_cost=config.fusion_cost)
        self._runner = runner or StageRunner(jitter=config.retry_jitter)

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def gate(self) -> CreditGate:
        return self._gate

    async def check_precondition(self, user_id: str) -> int:
        """Raise PaymentRequiredError when the user cannot pay for a run."""
        return await self._gate.require_balance(user_id)

    async def run(
        self,
        request: GenerationRequest,
        user_id: str,
        channel: BaseProgressChannel | None = None,
        precondition_checked: bool = False,
    ) -> PipelineOutcome:
        """Execute one run and return its outcome.

        Args:
            request: Validated generation request.
            user_id: Authenticated caller.
            channel: Progress subscriber; closed when the run ends.
            precondition_checked: Skip the balance check (the caller already
                ran ``check_precondition`` before starting the run).

        Raises:
            PaymentRequiredError: If the balance is not positive. Raised
                before any event is emitted.
        """
        channel = channel or NullProgressChannel()
        set_run_context(request.correlation_id, user_id)
        start = time.monotonic()

        try:
            if not precondition_checked:
                await self.check_precondition(user_id)

            logger.info(
                "Fusion run started: %s + %s -> %s (%s)",
                request.name_1, request.name_2, request.target_name,
                ", ".join(self._config.stage_names),
            )
            results = await self._run_stages(request, channel)
            outcome = resolve(request, results)
            outcome = await self._gate.finalize(request, user_id, outcome)

            channel.emit(ProgressEvent(
                stage="pipeline",
                status="completed",
                data=outcome.to_event_data(request.target_name),
            ))
            logger.info(
                "Fusion run %s in %.1fs (saved=%s, debited=%s)",
                "fell back" if outcome.is_fallback else "succeeded",
                time.monotonic() - start, outcome.saved, outcome.debited,
            )
            return outcome
        finally:
            channel.close()
            clear_context()

    async def _run_stages(
        self, request: GenerationRequest, channel: BaseProgressChannel,
    ) -> list[StageResult]:
        try:
            stages = build_stages(self._config, self._providers, request)
        except Exception:
            logger.exception("Could not build the stage plan")
            return []
        try:
            return await self._runner.run(stages, initial_artifact(request), channel)
        except Exception:
            # StageRunner folds stage errors into results; this guards its own bugs
            logger.exception("Stage runner failed unexpectedly")
            return []
