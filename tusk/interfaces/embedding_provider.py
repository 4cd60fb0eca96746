"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into fixed-length vectors.  The
ingestion scheduler calls :meth:`IEmbeddingProvider.embed` once per
sub-batch; the query service calls :meth:`IEmbeddingProvider.embed_single`
once per query.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider -- text-embedding-ada-002 (requires API key)
#   NomicEmbeddingProvider  -- nomic-embed-text via Ollama (local)
# Located in: tusk/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by ingestion and retrieval."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.

        Raises
        ------
        tusk.utils.errors.EmbeddingError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Example values: ``1536`` (OpenAI ``text-embedding-ada-002``),
        ``768`` (Nomic ``nomic-embed-text``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable."""
