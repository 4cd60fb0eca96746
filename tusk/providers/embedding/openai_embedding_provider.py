"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports real OpenAI and OpenAI-compatible providers (TogetherAI,
Fireworks) via custom ``base_url`` and model name settings.
"""

from __future__ import annotations

import openai
import structlog

from tusk.config.settings import Settings
from tusk.interfaces.embedding_provider import IEmbeddingProvider
from tusk.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-ada-002": 1536,
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-ada-002`` (1536 dims) by default.  Inputs larger
    than the per-call limit are split automatically, and every response is
    checked to contain exactly one vector per input.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        self._client = self._build_client()
        self._model = settings.openai_embedding_model or "text-embedding-ada-002"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 768)
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts."""
        if not texts:
            return []

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
                batch = texts[start : start + _OPENAI_BATCH_LIMIT]
                response = await self._require_client().embeddings.create(
                    input=batch,
                    model=self._model,
                )
                if len(response.data) != len(batch):
                    raise EmbeddingError(
                        message=(
                            f"mismatch in number of embeddings: expected {len(batch)}, "
                            f"got {len(response.data)}"
                        ),
                        provider_name=self.get_provider_name(),
                    )
                all_embeddings.extend(item.embedding for item in response.data)
                logger.debug(
                    "openai_embedding_batch",
                    model=self._model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
            return all_embeddings
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        if len(result) != 1:
            raise EmbeddingError(
                message=f"expected 1 embedding, got {len(result)}",
                provider_name=self.get_provider_name(),
            )
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_client(self) -> openai.AsyncOpenAI | None:
        if not self._api_key:
            return None
        client_kwargs: dict = {"api_key": self._api_key}
        if self._settings.openai_base_url:
            client_kwargs["base_url"] = self._settings.openai_base_url
        return openai.AsyncOpenAI(**client_kwargs)

    def _require_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            raise EmbeddingError(
                message="no API key configured",
                provider_name=self.get_provider_name(),
            )
        return self._client
