# src/providers/adapters/openai_adapter.py — v1
"""OpenAI adapters: vision description and image-edit enhancement.

Uses the official openai SDK. Base64 image responses are written through
the image store so later stages and the gallery get a stable reference.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import TYPE_CHECKING, Any

from pokefusion.core.models import DescriptionFields
from pokefusion.providers.base import (
    BaseDescribeProvider,
    BaseEnhanceProvider,
    NonTransientProviderError,
    ProviderError,
    ProviderOutputError,
)
from pokefusion.providers.image_utils import fetch_image_bytes
from pokefusion.providers.prompts import describe_prompt, enhance_prompt

if TYPE_CHECKING:
    from pokefusion.storage.image_store import LocalImageStore

logger = logging.getLogger(__name__)


def _map_openai_error(exc: Exception) -> ProviderError:
    import openai

    if isinstance(
        exc,
        (
            openai.BadRequestError,
            openai.AuthenticationError,
            openai.PermissionDeniedError,
            openai.NotFoundError,
            openai.UnprocessableEntityError,
        ),
    ):
        return NonTransientProviderError("openai", str(exc))
    return ProviderError("openai", f"{type(exc).__name__}: {exc}")


class _OpenAIBase:
    def __init__(self, model: str, api_key: str = "", timeout_s: float = 50.0, **kwargs: Any):
        self._model = model
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._client: Any = None

    @property
    def provider_name(self) -> str:
        return "openai"

    def _get_client(self) -> Any:
        if not self._api_key:
            raise NonTransientProviderError("openai", "OPENAI_API_KEY is not configured")
        if self._client is None:
            import openai

            # Retries are owned by the pipeline, not the SDK
            self._client = openai.AsyncOpenAI(
                api_key=self._api_key, timeout=self._timeout_s, max_retries=0,
            )
        return self._client


class OpenAIDescribeProvider(_OpenAIBase, BaseDescribeProvider):
    """Describe a blended image with a vision chat model."""

    def __init__(self, model: str = "gpt-4.1-mini", api_key: str = "", **kwargs: Any):
        super().__init__(model=model, api_key=api_key, **kwargs)

    async def describe(self, image_url: str, name_1: str, name_2: str) -> str:
        import openai

        client = self._get_client()
        if not image_url.startswith(("http://", "https://", "data:")):
            data = await fetch_image_bytes(image_url)
            image_url = f"data:image/png;base64,{base64.b64encode(data).decode()}"

        t0 = time.monotonic()
        try:
            resp = await client.chat.completions.create(
                model=self._model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": describe_prompt(name_1, name_2)},
                            {"type": "image_url", "image_url": {"url": image_url}},
                        ],
                    }
                ],
                max_tokens=1000,
            )
        except openai.OpenAIError as exc:
            raise _map_openai_error(exc) from exc
        latency = int((time.monotonic() - t0) * 1000)

        content = resp.choices[0].message.content if resp.choices else None
        if not content or not content.strip():
            raise ProviderOutputError("openai", "vision model returned an empty description")
        logger.debug("Description received in %dms (%d chars)", latency, len(content))
        return content


class OpenAIEnhanceProvider(_OpenAIBase, BaseEnhanceProvider):
    """Redraw the blended image with an image-edit model."""

    def __init__(
        self,
        model: str = "gpt-image-1",
        api_key: str = "",
        image_store: LocalImageStore | None = None,
        size: str = "1024x1024",
        **kwargs: Any,
    ):
        super().__init__(model=model, api_key=api_key, **kwargs)
        self._image_store = image_store
        self._size = size

    async def enhance(self, image_url: str, fields: DescriptionFields) -> str:
        import openai

        client = self._get_client()
        try:
            source = await fetch_image_bytes(image_url, timeout_s=self._timeout_s)
        except Exception as exc:
            raise ProviderError("openai", f"could not load source image: {exc}") from exc

        t0 = time.monotonic()
        try:
            resp = await client.images.edit(
                model=self._model,
                image=("fusion.png", source, "image/png"),
                prompt=enhance_prompt(fields),
                size=self._size,
                n=1,
            )
        except openai.OpenAIError as exc:
            raise _map_openai_error(exc) from exc
        latency = int((time.monotonic() - t0) * 1000)

        item = resp.data[0] if resp.data else None
        if item is not None and getattr(item, "url", None):
            logger.debug("Enhanced image URL received in %dms", latency)
            return item.url
        if item is not None and getattr(item, "b64_json", None):
            if self._image_store is None:
                raise ProviderOutputError("openai", "base64 image returned but no image store configured")
            b64 = item.b64_json
            if "base64," in b64:
                b64 = b64.split("base64,", 1)[1]
            ref = await self._image_store.save_bytes(base64.b64decode(b64), suffix=".png")
            logger.debug("Enhanced image stored at %s (%dms)", ref, latency)
            return ref
        raise ProviderOutputError("openai", "image model returned neither URL nor base64 data")
