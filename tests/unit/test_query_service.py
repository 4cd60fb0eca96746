"""Unit tests for QueryService (search, answer, chat)."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from tests.conftest import (
    InMemoryChunkStore,
    MockEmbeddingProvider,
    ScriptedGenerationProvider,
    _hash_to_vector,
)
from tusk.config.pipeline import SearchConfig
from tusk.models.document import ChunkRecord
from tusk.models.retrieval import GenerationState
from tusk.services.generation.aggregator import StreamingAggregator
from tusk.services.retrieval.query_service import QueryService
from tusk.utils.errors import EmbeddingError, RetrievalError


async def _store_with(*texts: str, owner: str = "alice") -> InMemoryChunkStore:
    store = InMemoryChunkStore()
    await store.bulk_insert_chunks(
        [
            ChunkRecord(
                chunk_id=f"c{i}",
                document_id="doc",
                content=text,
                embedding=_hash_to_vector(text),
                owner_id=owner,
                filename="doc.txt",
            )
            for i, text in enumerate(texts)
        ]
    )
    return store


def _service(store, generation, timeout: float = 30.0, limit: int = 5) -> QueryService:
    return QueryService(
        embedding_provider=MockEmbeddingProvider(),
        storage=store,
        generation_provider=generation,
        aggregator=StreamingAggregator(timeout),
        search_config=SearchConfig(num_candidates=500, limit=limit),
    )


class TestSearch:
    @pytest.mark.asyncio
    async def test_best_match_first(self) -> None:
        store = await _store_with("apples are red", "the sky is blue", "grass is green")
        service = _service(store, ScriptedGenerationProvider())

        hits = await service.search("the sky is blue", "alice")

        assert hits[0].content == "the sky is blue"
        assert hits[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_limit_applied(self) -> None:
        store = await _store_with(*[f"fact {i}" for i in range(10)])
        hits = await _service(store, ScriptedGenerationProvider(), limit=3).search("fact", "alice")
        assert len(hits) == 3

    @pytest.mark.asyncio
    async def test_other_owner_sees_nothing(self) -> None:
        store = await _store_with("private note", owner="alice")
        assert await _service(store, ScriptedGenerationProvider()).search("private note", "bob") == []

    @pytest.mark.asyncio
    async def test_embedding_failure_is_retrieval_error(self) -> None:
        service = _service(InMemoryChunkStore(), ScriptedGenerationProvider())
        service._embedding_provider.embed_single = AsyncMock(side_effect=EmbeddingError("down"))
        with pytest.raises(RetrievalError, match="could not embed query"):
            await service.search("q", "alice")


class TestAnswer:
    @pytest.mark.asyncio
    async def test_context_passed_to_model(self) -> None:
        store = await _store_with("Paris is the capital of France")
        generation = ScriptedGenerationProvider(["Paris", "."])

        answer = await _service(store, generation).answer("Paris is the capital of France", "alice")

        assert answer.results == "Paris."
        assert answer.generation.state is GenerationState.DONE
        assert len(answer.hits) == 1
        assert generation.requests[0]["context_chunks"] == ["\nParis is the capital of France\n\n"]

    @pytest.mark.asyncio
    async def test_no_hits_still_asks_model(self) -> None:
        generation = ScriptedGenerationProvider([])
        answer = await _service(InMemoryChunkStore(), generation).answer("anything?", "alice")

        assert answer.hits == []
        assert answer.results == "No results found."
        assert generation.requests[0]["context_chunks"] == []

    @pytest.mark.asyncio
    async def test_generation_error_text(self) -> None:
        generation = ScriptedGenerationProvider(["x"], fail_after=0)
        answer = await _service(InMemoryChunkStore(), generation).answer("q", "alice")

        assert answer.generation.state is GenerationState.ERROR
        assert answer.results == "Failed to generate response"

    @pytest.mark.asyncio
    async def test_cancelled_text(self) -> None:
        cancel = asyncio.Event()
        cancel.set()
        answer = await _service(InMemoryChunkStore(), ScriptedGenerationProvider(["x"])).answer(
            "q", "alice", cancel_event=cancel
        )
        assert answer.generation.state is GenerationState.CANCELLED
        assert answer.results == "Request timed out"

    @pytest.mark.asyncio
    async def test_timeout_text(self) -> None:
        generation = ScriptedGenerationProvider(["late"], delay=0.5)
        answer = await _service(InMemoryChunkStore(), generation, timeout=0.05).answer("q", "alice")
        assert answer.results == "The request timed out. Please try again."

    @pytest.mark.asyncio
    async def test_image_forwarded(self) -> None:
        generation = ScriptedGenerationProvider(["a chart"])
        await _service(InMemoryChunkStore(), generation).answer("what?", "alice", image_bytes=b"img")
        assert generation.requests[0]["image_bytes"] == b"img"


class TestChat:
    @pytest.mark.asyncio
    async def test_chat_without_retrieval(self) -> None:
        generation = ScriptedGenerationProvider(["hi ", "there"])
        service = _service(InMemoryChunkStore(), generation)

        result = await service.chat("hello")

        assert result.text == "hi there"
        assert generation.requests[0]["context_chunks"] == []
        assert len(generation.get_history()) == 2

        service.clear_history()
        assert generation.get_history() == []
