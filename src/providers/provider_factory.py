# src/providers/provider_factory.py — v1
"""Factory: instantiate stage providers from settings.

Adapters are registered by dotted class path and imported lazily, so an
unused provider's SDK never needs to be importable.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pokefusion.config.settings import Settings

if TYPE_CHECKING:
    from pokefusion.providers.base import (
        BaseBlendProvider,
        BaseDescribeProvider,
        BaseEnhanceProvider,
        BaseFusionProvider,
    )
    from pokefusion.storage.image_store import LocalImageStore

logger = logging.getLogger(__name__)

# Registry of (stage kind, provider name) → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[tuple[str, str], str] = {
    ("blend", "replicate"): "pokefusion.providers.adapters.replicate_adapter.ReplicateBlendProvider",
    ("fuse", "replicate"): "pokefusion.providers.adapters.replicate_adapter.ReplicateFusionProvider",
    ("describe", "openai"): "pokefusion.providers.adapters.openai_adapter.OpenAIDescribeProvider",
    ("enhance", "openai"): "pokefusion.providers.adapters.openai_adapter.OpenAIEnhanceProvider",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered for a stage kind."""


@dataclass
class ProviderSet:
    """Providers backing each stage kind. Disabled stages stay None."""

    blend: BaseBlendProvider | None = None
    describe: BaseDescribeProvider | None = None
    enhance: BaseEnhanceProvider | None = None
    fuse: BaseFusionProvider | None = None


def create_provider(kind: str, name: str, **kwargs: Any) -> Any:
    """Instantiate the adapter registered for ``(kind, name)``.

    Raises:
        UnsupportedProviderError: If nothing is registered for the pair.
    """
    key = (kind, name)
    if key not in _PROVIDER_REGISTRY:
        available = sorted(n for k, n in _PROVIDER_REGISTRY if k == kind)
        raise UnsupportedProviderError(
            f"Unsupported {kind} provider: {name!r}. Available: {', '.join(available) or 'none'}"
        )
    adapter_cls = _import_class(_PROVIDER_REGISTRY[key])
    logger.debug("Creating %s provider: %s", kind, name)
    return adapter_cls(**kwargs)


def create_providers(
    settings: Settings,
    image_store: LocalImageStore | None = None,
) -> ProviderSet:
    """Build the ProviderSet for the configured fusion mode and stages."""
    stages = set(settings.enabled_stages)
    providers = ProviderSet()
    common = {"timeout_s": settings.http_timeout_s}

    if "blend" in stages:
        providers.blend = create_provider(
            "blend", settings.blend_provider,
            model=settings.blend_model, api_token=settings.replicate_api_token, **common,
        )
    if "describe" in stages:
        providers.describe = create_provider(
            "describe", settings.describe_provider,
            model=settings.describe_model, api_key=settings.openai_api_key, **common,
        )
    if "enhance" in stages:
        providers.enhance = create_provider(
            "enhance", settings.enhance_provider,
            model=settings.enhance_model, api_key=settings.openai_api_key,
            image_store=image_store, **common,
        )
    if "fuse" in stages:
        providers.fuse = create_provider(
            "fuse", settings.single_model_provider,
            model=settings.single_model, api_token=settings.replicate_api_token, **common,
        )
    return providers


def register_provider(kind: str, name: str, class_path: str) -> None:
    """Register a custom adapter for a stage kind."""
    _PROVIDER_REGISTRY[(kind, name)] = class_path
    logger.info("Registered %s provider: %s → %s", kind, name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
