# tests/unit/providers/test_provider_factory.py — v1
"""Tests for providers/provider_factory.py — registry and settings wiring."""

from __future__ import annotations

import pytest

from pokefusion.config.settings import Settings
from pokefusion.providers.adapters.openai_adapter import OpenAIDescribeProvider, OpenAIEnhanceProvider
from pokefusion.providers.adapters.replicate_adapter import ReplicateBlendProvider, ReplicateFusionProvider
from pokefusion.providers.provider_factory import (
    _PROVIDER_REGISTRY,
    UnsupportedProviderError,
    create_provider,
    create_providers,
    register_provider,
)


class TestCreateProvider:
    def test_unknown_provider(self):
        with pytest.raises(UnsupportedProviderError, match="Available: replicate"):
            create_provider("blend", "midjourney")

    def test_register_custom(self):
        key = ("describe", "stub")
        try:
            register_provider("describe", "stub", "pokefusion.providers.adapters.openai_adapter.OpenAIDescribeProvider")
            provider = create_provider("describe", "stub", api_key="k")
            assert isinstance(provider, OpenAIDescribeProvider)
        finally:
            _PROVIDER_REGISTRY.pop(key, None)


class TestCreateProviders:
    def test_multi_step_builds_three(self):
        s = Settings(_env_file=None, replicate_api_token="r8", openai_api_key="sk")
        providers = create_providers(s)
        assert isinstance(providers.blend, ReplicateBlendProvider)
        assert isinstance(providers.describe, OpenAIDescribeProvider)
        assert isinstance(providers.enhance, OpenAIEnhanceProvider)
        assert providers.fuse is None

    def test_single_model_builds_fuse_only(self):
        s = Settings(_env_file=None, fusion_mode="single_model", replicate_api_token="r8")
        providers = create_providers(s)
        assert isinstance(providers.fuse, ReplicateFusionProvider)
        assert providers.blend is None and providers.describe is None and providers.enhance is None

    def test_disabled_stage_has_no_provider(self):
        s = Settings(_env_file=None, enable_enhance_stage=False)
        providers = create_providers(s)
        assert providers.enhance is None
        assert providers.describe is not None
