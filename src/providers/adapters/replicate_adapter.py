# src/providers/adapters/replicate_adapter.py — v1
"""Replicate adapters: two-image blend and single-call fusion.

Uses the official replicate SDK (imported lazily so the package works
without it when these stages are disabled).
"""

from __future__ import annotations

import logging
import time
from typing import Any

from pokefusion.providers.base import (
    BaseBlendProvider,
    BaseFusionProvider,
    NonTransientProviderError,
    ProviderError,
    ProviderOutputError,
)
from pokefusion.providers.image_utils import prepare_image_reference
from pokefusion.providers.prompts import blend_prompt, fusion_prompt

logger = logging.getLogger(__name__)

DEFAULT_BLEND_MODEL = (
    "charlesmccarthy/blend-images:"
    "1ed8aaaa04fa84f0c1191679e765d209b94866f6503038416dcbcb340fede892"
)
DEFAULT_FUSION_MODEL = "qwen/qwen-image"


def _output_url(output: Any) -> str | None:
    """Extract the first image URL from a replicate run() result."""
    if isinstance(output, (list, tuple)):
        output = output[0] if output else None
    if output is None:
        return None
    if isinstance(output, str):
        return output or None
    url = getattr(output, "url", None)
    if callable(url):
        url = url()
    return url if isinstance(url, str) and url else None


class _ReplicateBase:
    """Shared client handling and error mapping."""

    def __init__(self, model: str, api_token: str = "", timeout_s: float = 50.0, **kwargs: Any):
        self._model = model
        self._api_token = api_token
        self._timeout_s = timeout_s
        self._client: Any = None

    @property
    def provider_name(self) -> str:
        return "replicate"

    def _get_client(self) -> Any:
        if not self._api_token:
            raise NonTransientProviderError("replicate", "REPLICATE_API_TOKEN is not configured")
        if self._client is None:
            import replicate

            self._client = replicate.Client(api_token=self._api_token, timeout=self._timeout_s)
        return self._client

    async def _run(self, inputs: dict[str, Any]) -> str:
        import replicate.exceptions

        client = self._get_client()
        t0 = time.monotonic()
        try:
            output = await client.async_run(self._model, input=inputs)
        except replicate.exceptions.ReplicateError as exc:
            status = getattr(exc, "status", None)
            if status is not None and 400 <= status < 500 and status != 429:
                raise NonTransientProviderError("replicate", str(exc)) from exc
            raise ProviderError("replicate", str(exc)) from exc
        except replicate.exceptions.ModelError as exc:
            raise ProviderError("replicate", f"model error: {exc}") from exc
        except (ProviderError, ValueError):
            raise
        except Exception as exc:
            raise ProviderError("replicate", f"{type(exc).__name__}: {exc}") from exc

        url = _output_url(output)
        latency = int((time.monotonic() - t0) * 1000)
        if url is None:
            raise ProviderOutputError("replicate", f"{self._model} returned no image")
        logger.debug("Replicate %s finished in %dms", self._model.split(":")[0], latency)
        return url


class ReplicateBlendProvider(_ReplicateBase, BaseBlendProvider):
    """Blend two images with a Replicate image-blending model."""

    def __init__(self, model: str = DEFAULT_BLEND_MODEL, api_token: str = "", **kwargs: Any):
        super().__init__(model=model, api_token=api_token, **kwargs)

    async def blend(self, image_1: str, image_2: str, name_1: str, name_2: str) -> str:
        if not image_1 or not image_2:
            raise NonTransientProviderError("replicate", "both source images are required")
        return await self._run(
            {
                "image1": prepare_image_reference(image_1),
                "image2": prepare_image_reference(image_2),
                "prompt": blend_prompt(name_1, name_2),
            }
        )


class ReplicateFusionProvider(_ReplicateBase, BaseFusionProvider):
    """One-shot fusion with a multi-image Replicate model."""

    def __init__(self, model: str = DEFAULT_FUSION_MODEL, api_token: str = "", **kwargs: Any):
        super().__init__(model=model, api_token=api_token, **kwargs)

    async def fuse(
        self, image_1: str, image_2: str, name_1: str, name_2: str, target_name: str,
    ) -> str:
        if not image_1 or not image_2:
            raise NonTransientProviderError("replicate", "both source images are required")
        return await self._run(
            {
                "images": [prepare_image_reference(image_1), prepare_image_reference(image_2)],
                "prompt": fusion_prompt(name_1, name_2, target_name),
                "strength": 0.7,
                "guidance": 3.5,
                "num_inference_steps": 50,
                "aspect_ratio": "1:1",
                "output_format": "png",
                "go_fast": True,
                "output_quality": 90,
            }
        )
