# src/api/facade.py — v1
"""Public API facade — single entry point for fusion generation.

Usage:
    from pokefusion.api.facade import generate_fusion
    outcome = await generate_fusion(request, user_id="u1")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pokefusion.config.settings import Settings
from pokefusion.core.models import CreditLedgerEntry, GenerationRequest, PipelineOutcome

if TYPE_CHECKING:
    from pokefusion.credits.gate import CreditGate
    from pokefusion.pipeline.orchestrator import FusionOrchestrator
    from pokefusion.progress.base_channel import BaseProgressChannel
    from pokefusion.storage.base_fusion_store import BaseFusionStore

logger = logging.getLogger(__name__)

SIGNUP_REFERENCE = "signup"


def build_orchestrator(
    settings: Settings | None = None,
    store: BaseFusionStore | None = None,
) -> FusionOrchestrator:
    """Wire store, image store, providers and pipeline config from settings.

    Raises:
        UnsupportedProviderError: If a configured provider is unknown.
        UnsupportedBackendError: If STORE_BACKEND is unknown.
    """
    from pokefusion.pipeline.orchestrator import FusionOrchestrator
    from pokefusion.providers.provider_factory import create_providers
    from pokefusion.storage.image_store import LocalImageStore
    from pokefusion.storage.store_factory import create_store

    settings = settings or Settings()
    store = store or create_store(settings)
    image_store = LocalImageStore(settings.image_store_root, settings.image_public_base_url)
    providers = create_providers(settings, image_store=image_store)
    config = settings.to_pipeline_config()

    logger.info(
        "Orchestrator ready: mode=%s, stages=%s, store=%s",
        settings.fusion_mode, config.stage_names, settings.store_backend,
    )
    return FusionOrchestrator(config=config, providers=providers, store=store)


async def ensure_signup_credits(
    gate: CreditGate, user_id: str, amount: int,
) -> CreditLedgerEntry | None:
    """Grant the one-time signup bonus (idempotent per user)."""
    if amount <= 0:
        return None
    return await gate.grant(
        user_id, amount, reason="grant",
        description="Signup bonus", reference_id=SIGNUP_REFERENCE,
    )


async def generate_fusion(
    request: GenerationRequest,
    user_id: str,
    settings: Settings | None = None,
    orchestrator: FusionOrchestrator | None = None,
    channel: BaseProgressChannel | None = None,
) -> PipelineOutcome:
    """Run one fusion end-to-end and return its outcome.

    This is the main public API. The returned outcome always carries a
    usable image; ``is_fallback`` tells whether it is the generated fusion
    or the first source image.

    Args:
        request: Validated generation request.
        user_id: Caller to check and charge.
        settings: Global settings. Loaded from .env if None.
        orchestrator: Pre-built orchestrator (built from settings if None).
        channel: Optional progress subscriber.

    Raises:
        PaymentRequiredError: If the caller has no credits.
    """
    if orchestrator is None:
        orchestrator = build_orchestrator(settings)
    return await orchestrator.run(request, user_id, channel)
