"""Retrieval-augmented question answering.

Flow for :meth:`QueryService.answer`::

    query ──embed──> vector ──vector_search(owner)──> hits
    hits ──assemble_context──> context ──stream_response──> deltas
    deltas ──StreamingAggregator──> GenerationResult ──> Answer

Embedding and search failures propagate as :class:`RetrievalError`.
Generation failures never propagate: they become an ERROR, CANCELLED or
TIMED_OUT result with a fixed user-facing text.
"""

from __future__ import annotations

import asyncio

import structlog

from tusk.config.pipeline import SearchConfig
from tusk.interfaces.embedding_provider import IEmbeddingProvider
from tusk.interfaces.generation_provider import IGenerationProvider
from tusk.interfaces.storage_provider import IStorageProvider
from tusk.models.retrieval import Answer, GenerationResult, GenerationState, SearchHit
from tusk.services.generation.aggregator import CANCELLED_MESSAGE, StreamingAggregator
from tusk.services.retrieval.assembler import assemble_context
from tusk.utils.errors import EmbeddingError, RetrievalError

logger = structlog.get_logger(logger_name=__name__)

GENERATION_FAILED_TEXT = "Failed to generate response"


def outcome_text(result: GenerationResult) -> str:
    """Return the text a user should see for *result*."""
    if result.state is GenerationState.CANCELLED:
        return CANCELLED_MESSAGE
    if result.state is GenerationState.ERROR:
        return GENERATION_FAILED_TEXT
    return result.text


class QueryService:
    """Answers questions over one owner's documents.

    Parameters
    ----------
    embedding_provider:
        Must be the same model that embedded the stored chunks.
    storage:
        Vector search over chunks, with filenames resolved.
    generation_provider:
        Streams the answer.
    aggregator:
        Applies the generation deadline and cancellation.
    search_config:
        Candidate pool and result limit.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        storage: IStorageProvider,
        generation_provider: IGenerationProvider,
        aggregator: StreamingAggregator | None = None,
        search_config: SearchConfig | None = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._storage = storage
        self._generation_provider = generation_provider
        self._aggregator = aggregator or StreamingAggregator()
        self._search = search_config or SearchConfig()

    async def search(self, query: str, owner_id: str) -> list[SearchHit]:
        """Return the best-matching chunks for *query*, highest score first."""
        try:
            vector = await self._embedding_provider.embed_single(query)
        except EmbeddingError as exc:
            raise RetrievalError(
                message=f"could not embed query: {exc}",
                provider_name=self._embedding_provider.get_provider_name(),
            ) from exc

        hits = await self._storage.vector_search(
            vector,
            num_candidates=self._search.num_candidates,
            limit=self._search.limit,
            owner_id=owner_id,
        )
        logger.info(
            "query_search_complete",
            owner_id=owner_id,
            hits=len(hits),
            top_score=hits[0].score if hits else 0.0,
        )
        return hits

    async def answer(
        self,
        query: str,
        owner_id: str,
        cancel_event: asyncio.Event | None = None,
        image_bytes: bytes | None = None,
    ) -> Answer:
        """Search, then stream an answer grounded in the hits."""
        hits = await self.search(query, owner_id)
        context = assemble_context(hits)
        stream = self._generation_provider.stream_response(
            query,
            context_chunks=[context] if context else [],
            image_bytes=image_bytes,
        )
        generation = await self._aggregator.aggregate(stream, cancel_event)
        return Answer(
            query=query,
            results=outcome_text(generation),
            hits=hits,
            generation=generation,
        )

    async def chat(
        self,
        message: str,
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationResult:
        """One conversational turn without retrieval."""
        stream = self._generation_provider.stream_response(message)
        return await self._aggregator.aggregate(stream, cancel_event)

    def clear_history(self) -> None:
        self._generation_provider.clear_history()
