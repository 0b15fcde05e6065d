# tests/unit/providers/test_adapters.py — v1
"""Tests for Replicate and OpenAI adapters — mocked SDK clients."""

from __future__ import annotations

import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from pokefusion.core.models import DescriptionFields
from pokefusion.providers.adapters.openai_adapter import OpenAIDescribeProvider, OpenAIEnhanceProvider
from pokefusion.providers.adapters.replicate_adapter import (
    ReplicateBlendProvider,
    ReplicateFusionProvider,
    _output_url,
)
from pokefusion.providers.base import NonTransientProviderError, ProviderError, ProviderOutputError

_PNG_URI = "data:image/png;base64," + base64.b64encode(b"fakepng").decode()


def _replicate(provider_cls, output=None, side_effect=None):
    provider = provider_cls(api_token="r8_test")
    client = MagicMock()
    client.async_run = AsyncMock(return_value=output, side_effect=side_effect)
    provider._client = client
    return provider, client


class TestOutputUrl:
    def test_variants(self):
        assert _output_url("https://x/a.png") == "https://x/a.png"
        assert _output_url(["https://x/a.png", "https://x/b.png"]) == "https://x/a.png"
        assert _output_url(SimpleNamespace(url="https://x/c.png")) == "https://x/c.png"
        assert _output_url(SimpleNamespace(url=lambda: "https://x/d.png")) == "https://x/d.png"
        assert _output_url([]) is None
        assert _output_url("") is None


class TestReplicateBlend:
    @pytest.mark.asyncio
    async def test_blend_sends_both_images_and_prompt(self):
        provider, client = _replicate(ReplicateBlendProvider, output=["https://x/blend.png"])
        url = await provider.blend("https://img/a.png", "https://img/b.png", "Pikachu", "Eevee")

        assert url == "https://x/blend.png"
        model, = client.async_run.await_args.args
        inputs = client.async_run.await_args.kwargs["input"]
        assert model.startswith("charlesmccarthy/blend-images")
        assert inputs["image1"] == "https://img/a.png"
        assert inputs["image2"] == "https://img/b.png"
        assert "Pikachu" in inputs["prompt"]

    @pytest.mark.asyncio
    async def test_missing_token_is_non_transient(self):
        provider = ReplicateBlendProvider(api_token="")
        with pytest.raises(NonTransientProviderError, match="REPLICATE_API_TOKEN"):
            await provider.blend("a", "b", "A", "B")

    @pytest.mark.asyncio
    async def test_empty_output_is_output_error(self):
        provider, _ = _replicate(ReplicateBlendProvider, output=None)
        with pytest.raises(ProviderOutputError):
            await provider.blend("https://a", "https://b", "A", "B")

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_transient(self):
        provider, _ = _replicate(ReplicateBlendProvider, side_effect=ConnectionError("reset"))
        with pytest.raises(ProviderError) as exc_info:
            await provider.blend("https://a", "https://b", "A", "B")
        assert not isinstance(exc_info.value, NonTransientProviderError)

    @pytest.mark.asyncio
    async def test_replicate_client_error_is_non_transient(self):
        from replicate.exceptions import ReplicateError

        err = ReplicateError("invalid input")
        err.status = 422
        provider, _ = _replicate(ReplicateBlendProvider, side_effect=err)
        with pytest.raises(NonTransientProviderError):
            await provider.blend("https://a", "https://b", "A", "B")


class TestReplicateFusion:
    @pytest.mark.asyncio
    async def test_fuse_inputs(self):
        provider, client = _replicate(ReplicateFusionProvider, output="https://x/fused.png")
        url = await provider.fuse("https://a", "https://b", "Mew", "Ditto", "Mewtto")
        assert url == "https://x/fused.png"
        inputs = client.async_run.await_args.kwargs["input"]
        assert inputs["images"] == ["https://a", "https://b"]
        assert "Mewtto" in inputs["prompt"]
        assert client.async_run.await_args.args[0] == "qwen/qwen-image"


class TestOpenAIDescribe:
    @pytest.mark.asyncio
    async def test_returns_message_content(self):
        provider = OpenAIDescribeProvider(api_key="sk-test")
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="**Color palette:** red"))]
        ))
        provider._client = client

        text = await provider.describe("https://x/blend.png", "A", "B")

        assert text == "**Color palette:** red"
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4.1-mini"
        image_part = kwargs["messages"][0]["content"][1]
        assert image_part["image_url"]["url"] == "https://x/blend.png"

    @pytest.mark.asyncio
    async def test_empty_content_is_output_error(self):
        provider = OpenAIDescribeProvider(api_key="sk-test")
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="  "))]
        ))
        provider._client = client
        with pytest.raises(ProviderOutputError):
            await provider.describe("https://x/blend.png", "A", "B")

    @pytest.mark.asyncio
    async def test_local_file_sent_as_data_uri(self, tmp_path):
        img = tmp_path / "blend.png"
        img.write_bytes(b"fakepng")
        provider = OpenAIDescribeProvider(api_key="sk-test")
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="ok"))]
        ))
        provider._client = client

        await provider.describe(str(img), "A", "B")

        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["messages"][0]["content"][1]["image_url"]["url"] == _PNG_URI

    @pytest.mark.asyncio
    async def test_missing_key_is_non_transient(self):
        with pytest.raises(NonTransientProviderError, match="OPENAI_API_KEY"):
            await OpenAIDescribeProvider(api_key="").describe("https://x", "A", "B")


class TestOpenAIEnhance:
    @pytest.mark.asyncio
    async def test_url_response(self):
        provider = OpenAIEnhanceProvider(api_key="sk-test")
        client = MagicMock()
        client.images.edit = AsyncMock(return_value=SimpleNamespace(
            data=[SimpleNamespace(url="https://x/enh.png", b64_json=None)]
        ))
        provider._client = client

        url = await provider.enhance(_PNG_URI, DescriptionFields(color_palette="gold"))

        assert url == "https://x/enh.png"
        kwargs = client.images.edit.await_args.kwargs
        assert kwargs["model"] == "gpt-image-1"
        assert kwargs["image"][1] == b"fakepng"
        assert "gold" in kwargs["prompt"]

    @pytest.mark.asyncio
    async def test_b64_response_goes_through_image_store(self):
        store = MagicMock()
        store.save_bytes = AsyncMock(return_value="file:///tmp/enh.png")
        provider = OpenAIEnhanceProvider(api_key="sk-test", image_store=store)
        client = MagicMock()
        client.images.edit = AsyncMock(return_value=SimpleNamespace(
            data=[SimpleNamespace(url=None, b64_json=base64.b64encode(b"result").decode())]
        ))
        provider._client = client

        ref = await provider.enhance(_PNG_URI, DescriptionFields())

        assert ref == "file:///tmp/enh.png"
        store.save_bytes.assert_awaited_once_with(b"result", suffix=".png")

    @pytest.mark.asyncio
    async def test_b64_without_store_is_output_error(self):
        provider = OpenAIEnhanceProvider(api_key="sk-test")
        client = MagicMock()
        client.images.edit = AsyncMock(return_value=SimpleNamespace(
            data=[SimpleNamespace(url=None, b64_json="cmVzdWx0")]
        ))
        provider._client = client
        with pytest.raises(ProviderOutputError):
            await provider.enhance(_PNG_URI, DescriptionFields())

    @pytest.mark.asyncio
    async def test_unreadable_source_is_transient(self, tmp_path):
        provider = OpenAIEnhanceProvider(api_key="sk-test")
        provider._client = MagicMock()
        with pytest.raises(ProviderError):
            await provider.enhance(str(tmp_path / "missing.png"), DescriptionFields())
