"""Abstract base class for streaming text-generation providers.

A generation provider turns a query plus retrieved context into a stream of
text deltas.  The stream is an async iterator: it ends normally when the
model is done and raises :class:`~tusk.utils.errors.GenerationError` when
the model fails, so a single ``async for`` observes both the data and the
terminal error.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, Sequence

from tusk.models.retrieval import ChatMessage


# Concrete implementations: OpenAIGenerationProvider, OllamaGenerationProvider
# Located in: tusk/providers/llm/
class IGenerationProvider(ABC):
    """Contract for the model that writes answers and reads images."""

    @abstractmethod
    def stream_response(
        self,
        query: str,
        context_chunks: Sequence[str] = (),
        image_bytes: bytes | None = None,
    ) -> AsyncIterator[str]:
        """Stream the model's answer to *query*.

        Parameters
        ----------
        query:
            The user's question.
        context_chunks:
            Retrieved context, placed before the query in the prompt.
        image_bytes:
            Optional image sent alongside the prompt.

        Returns
        -------
        AsyncIterator[str]
            Text deltas in generation order.

        Raises
        ------
        tusk.utils.errors.GenerationError
            From the iterator, if the model call fails.
        """

    @abstractmethod
    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Return the model's full (non-streamed) reading of an image."""

    @abstractmethod
    def supports_vision(self) -> bool:
        """Return ``True`` if :meth:`vision_extract` can be used."""

    @abstractmethod
    def get_history(self) -> list[ChatMessage]:
        """Return the conversation so far, excluding the system prompt."""

    @abstractmethod
    def clear_history(self) -> None:
        """Forget every turn except the system prompt."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (doesn't call the API)."""
