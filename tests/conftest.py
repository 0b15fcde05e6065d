# tests/conftest.py — v1
"""Shared test fixtures for unit tests.

Provides a sample request, stub providers, fast pipeline configs and
temp-dir stores. No network access: every provider is an AsyncMock.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from pokefusion.core.models import CreditLedgerEntry, GenerationRequest
from pokefusion.pipeline.config import PipelineConfig, StageConfig
from pokefusion.providers.provider_factory import ProviderSet
from pokefusion.storage.json_store import JsonFusionStore

DESCRIPTION_TEXT = """**Body structure and pose:** bipedal with a long tail
**Color palette:** yellow and orange
**Key features:** flame-tipped tail and red cheeks
**Texture and surface:** smooth scales
**Species influence or type vibe:** fire-electric lizard
**Attitude and expression:** playful grin
**Notable accessories or markings:** lightning stripes on the back
"""


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_request() -> GenerationRequest:
    """Valid request fusing Pikachu and Charmander."""
    return GenerationRequest(
        source_image_1="https://img.example/pikachu.png",
        source_image_2="https://img.example/charmander.png",
        name_1="Pikachu",
        name_2="Charmander",
        target_name="Pikamander",
        correlation_id="corr-001",
        source_id_1=25,
        source_id_2=4,
    )


@pytest.fixture
def fast_config() -> PipelineConfig:
    """Three-stage plan with short timeouts and no backoff delay."""
    return PipelineConfig(
        stages=(
            StageConfig("blend", timeout_s=1.0, max_retries=0, base_delay_s=0.0),
            StageConfig("describe", timeout_s=1.0, max_retries=0, base_delay_s=0.0),
            StageConfig("enhance", timeout_s=1.0, max_retries=0, base_delay_s=0.0),
        ),
    )


# === FIXTURES: Providers ===


@pytest.fixture
def stub_providers() -> ProviderSet:
    """Providers that all succeed immediately."""
    blend = MagicMock()
    blend.blend = AsyncMock(return_value="https://cdn.example/blended.png")
    describe = MagicMock()
    describe.describe = AsyncMock(return_value=DESCRIPTION_TEXT)
    enhance = MagicMock()
    enhance.enhance = AsyncMock(return_value="https://cdn.example/enhanced.png")
    fuse = MagicMock()
    fuse.fuse = AsyncMock(return_value="https://cdn.example/fused.png")
    return ProviderSet(blend=blend, describe=describe, enhance=enhance, fuse=fuse)


# === FIXTURES: Storage ===


@pytest.fixture
def json_store(tmp_path: Path) -> JsonFusionStore:
    """Empty JSON store under a temp directory."""
    return JsonFusionStore(root=tmp_path / "store")


@pytest.fixture
def funded_store(tmp_path: Path) -> JsonFusionStore:
    """JSON store where user 'u1' holds 5 credits."""
    store = JsonFusionStore(root=tmp_path / "store")
    seed = CreditLedgerEntry(user_id="u1", amount=5, reason="grant", reference_id="seed")
    (tmp_path / "store" / "ledger" / "u1.jsonl").write_text(
        seed.model_dump_json() + "\n", encoding="utf-8",
    )
    return store
