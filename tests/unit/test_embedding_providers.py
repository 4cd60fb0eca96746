"""Unit tests for embedding provider adapters (OpenAI, Nomic)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import openai
import pytest

from tusk.config.settings import Settings
from tusk.utils.errors import EmbeddingError


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "",
        "ollama_base_url": "http://localhost:11434",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _response(vectors: list[list[float]]) -> MagicMock:
    response = MagicMock()
    response.data = [MagicMock(embedding=v) for v in vectors]
    response.usage = MagicMock(total_tokens=10)
    return response


# ======================================================================
# OpenAI Embedding Provider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    def test_defaults_to_ada(self) -> None:
        from tusk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        provider = OpenAIEmbeddingProvider(_settings())
        assert provider.get_dimension() == 1536
        assert provider.get_provider_name() == "openai_embedding"
        assert provider.is_available() is True

    def test_model_override_changes_dimension(self) -> None:
        from tusk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        provider = OpenAIEmbeddingProvider(_settings(openai_embedding_model="text-embedding-3-large"))
        assert provider.get_dimension() == 3072

    def test_is_available_without_key(self) -> None:
        from tusk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        assert OpenAIEmbeddingProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_embed_without_key_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from tusk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with patch("tusk.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI") as client_cls:
            provider = OpenAIEmbeddingProvider(_settings(openai_api_key=""))

        client_cls.assert_not_called()
        with pytest.raises(EmbeddingError, match="no API key configured"):
            await provider.embed(["a"])

    @pytest.mark.asyncio
    async def test_embed_success(self) -> None:
        from tusk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response([[0.1] * 1536, [0.2] * 1536]))

        with patch(
            "tusk.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            result = await provider.embed(["a", "b"])

        assert len(result) == 2
        assert mock_client.embeddings.create.call_args.kwargs["model"] == "text-embedding-ada-002"

    @pytest.mark.asyncio
    async def test_embed_empty_makes_no_call(self) -> None:
        from tusk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        with patch(
            "tusk.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            assert await provider.embed([]) == []
        mock_client.embeddings.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_count_mismatch_raises(self) -> None:
        from tusk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response([[0.1] * 1536]))

        with patch(
            "tusk.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            with pytest.raises(EmbeddingError, match="mismatch in number of embeddings"):
                await provider.embed(["a", "b"])

    @pytest.mark.asyncio
    async def test_embed_error(self) -> None:
        from tusk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(message="Rate limit", request=MagicMock(), body=None)
        )

        with patch(
            "tusk.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            with pytest.raises(EmbeddingError) as exc_info:
                await provider.embed(["test"])

        assert exc_info.value.provider_name == "openai_embedding"


# ======================================================================
# Nomic Embedding Provider
# ======================================================================


class TestNomicEmbeddingProvider:
    def test_dimension_and_name(self) -> None:
        from tusk.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        provider = NomicEmbeddingProvider(_settings())
        assert provider.get_dimension() == 768
        assert "nomic" in provider.get_provider_name()

    def test_is_available(self) -> None:
        import httpx

        from tusk.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        provider = NomicEmbeddingProvider(_settings())
        with patch(
            "tusk.providers.embedding.nomic_embedding_provider.httpx.get",
            return_value=MagicMock(status_code=200),
        ):
            assert provider.is_available() is True
        with patch(
            "tusk.providers.embedding.nomic_embedding_provider.httpx.get",
            side_effect=httpx.ConnectError("refused"),
        ):
            assert provider.is_available() is False

    @pytest.mark.asyncio
    async def test_embed_single(self) -> None:
        from tusk.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response([[0.4] * 768]))

        with patch(
            "tusk.providers.embedding.nomic_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = NomicEmbeddingProvider(_settings())
            result = await provider.embed_single("hello")

        assert len(result) == 768
        assert mock_client.embeddings.create.call_args.kwargs["model"] == "nomic-embed-text"
