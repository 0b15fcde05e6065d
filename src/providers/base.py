# src/providers/base.py — v1
"""Abstract provider interfaces for the generation stages.

Each stage of the pipeline is backed by one provider call. Providers
return image references (URL, data URI or local path) or text, and raise
ProviderError subclasses on failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pokefusion.core.models import DescriptionFields


class ProviderError(Exception):
    """Transient provider failure (network blip, 5xx, rate limit). Retried."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class NonTransientProviderError(ProviderError):
    """Provider rejected the input (validation, auth, moderation). Not retried."""


class ProviderOutputError(ProviderError):
    """Provider answered with a response we cannot use."""


_NON_TRANSIENT_MARKERS = ("400", "401", "403", "422", "invalid", "unauthorized", "moderation")


def classify_provider_error(error: BaseException) -> bool:
    """Return True when ``error`` is worth retrying.

    Explicit NonTransientProviderError and pydantic/ValueError validation
    failures are permanent; other errors are retried unless their message
    carries a client-error marker.
    """
    if isinstance(error, NonTransientProviderError):
        return False
    if isinstance(error, ProviderError):
        return True
    if isinstance(error, (ValueError, TypeError)):
        return False
    msg = str(error).lower()
    return not any(marker in msg for marker in _NON_TRANSIENT_MARKERS)


class BaseBlendProvider(ABC):
    """Blend two source images into a rough hybrid."""

    @abstractmethod
    async def blend(self, image_1: str, image_2: str, name_1: str, name_2: str) -> str:
        """Return a reference to the blended image."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""


class BaseDescribeProvider(ABC):
    """Describe a blended image in words."""

    @abstractmethod
    async def describe(self, image_url: str, name_1: str, name_2: str) -> str:
        """Return a free-text description of the fusion."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""


class BaseEnhanceProvider(ABC):
    """Redraw a blended image guided by its parsed description."""

    @abstractmethod
    async def enhance(self, image_url: str, fields: DescriptionFields) -> str:
        """Return a reference to the enhanced image."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""


class BaseFusionProvider(ABC):
    """Single-call fusion (both images in, finished image out)."""

    @abstractmethod
    async def fuse(
        self, image_1: str, image_2: str, name_1: str, name_2: str, target_name: str,
    ) -> str:
        """Return a reference to the fused image."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""
