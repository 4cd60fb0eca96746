"""Shared pytest fixtures and deterministic fakes for the Tusk test suite."""

from __future__ import annotations

import asyncio
import hashlib
import math
import struct
from typing import AsyncIterator, Sequence

import pytest
import pytest_asyncio

from tusk.interfaces.chunk_store import IChunkStore
from tusk.interfaces.embedding_provider import IEmbeddingProvider
from tusk.interfaces.generation_provider import IGenerationProvider
from tusk.models.document import ChunkRecord
from tusk.models.retrieval import ChatMessage, SearchHit
from tusk.utils.errors import EmbeddingError, GenerationError

# ---------------------------------------------------------------------------
# Embedding fakes
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 128


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic fixed-length vector by hashing *text*.

    Uses SHA-256 to hash the text, then unpacks bytes into floats and
    normalises to unit length.  Identical texts map to identical vectors,
    so a query equal to a stored chunk scores 1.0.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    # Read as unsigned ints so no NaN/inf can appear, then centre on zero.
    values = [v / 2**31 - 1.0 for v in struct.unpack(f"<{dim}I", raw)]
    magnitude = max(math.sqrt(sum(v * v for v in values)), 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class FlakyEmbeddingProvider(MockEmbeddingProvider):
    """Fails the first ``failures_per_batch`` calls for each distinct batch.

    ``always_fail`` lists texts whose batch never succeeds.  ``delay``
    adds a sleep per call and ``in_flight`` / ``max_in_flight`` record
    concurrency so tests can check the semaphore bound.
    """

    def __init__(
        self,
        failures_per_batch: int = 0,
        always_fail: Sequence[str] = (),
        delay: float = 0.0,
    ) -> None:
        super().__init__()
        self._failures_per_batch = failures_per_batch
        self._always_fail = set(always_fail)
        self._delay = delay
        self._attempts: dict[tuple[str, ...], int] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    def attempts_for(self, batch: Sequence[str]) -> int:
        return self._attempts.get(tuple(batch), 0)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        key = tuple(texts)
        self._attempts[key] = self._attempts.get(key, 0) + 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            if self._always_fail.intersection(texts):
                raise EmbeddingError("permanent failure", provider_name="flaky")
            if self._attempts[key] <= self._failures_per_batch:
                raise EmbeddingError("transient failure", provider_name="flaky")
            return await super().embed(texts)
        finally:
            self.in_flight -= 1

    def get_provider_name(self) -> str:
        return "flaky-embedding"


# ---------------------------------------------------------------------------
# Chunk store fake
# ---------------------------------------------------------------------------


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryChunkStore(IChunkStore):
    """Dict-backed chunk store with brute-force cosine search.

    ``fail_on_flush`` makes the n-th :meth:`bulk_insert_chunks` call (1-based)
    raise :class:`PersistenceError` without writing anything.
    """

    def __init__(self, fail_on_flush: int | None = None) -> None:
        self.records: dict[str, ChunkRecord] = {}
        self.flush_sizes: list[int] = []
        self._fail_on_flush = fail_on_flush

    async def bulk_insert_chunks(self, records: list[ChunkRecord]) -> int:
        from tusk.utils.errors import PersistenceError

        if self._fail_on_flush is not None and len(self.flush_sizes) + 1 == self._fail_on_flush:
            self.flush_sizes.append(0)
            raise PersistenceError(
                "simulated write failure",
                provider_name="memory",
                failed_ids=[r.chunk_id for r in records],
            )
        for record in records:
            self.records[record.chunk_id] = record
        self.flush_sizes.append(len(records))
        return len(records)

    async def delete_by_document(self, document_id: str, owner_id: str) -> int:
        doomed = [
            cid
            for cid, r in self.records.items()
            if r.document_id == document_id and r.owner_id == owner_id
        ]
        for cid in doomed:
            del self.records[cid]
        return len(doomed)

    async def vector_search(
        self,
        query_vector: list[float],
        num_candidates: int,
        limit: int,
        owner_id: str,
    ) -> list[SearchHit]:
        from tusk.services.retrieval.vector_query import validate_pool

        validate_pool(num_candidates, limit)
        scored = [
            SearchHit(
                content=r.content,
                filename=r.filename,
                score=max(0.0, min(1.0, _cosine(query_vector, r.embedding))),
                document_id=r.document_id,
                chunk_id=r.chunk_id,
            )
            for r in self.records.values()
            if r.owner_id == owner_id
        ]
        scored.sort(key=lambda hit: hit.score, reverse=True)
        return scored[:num_candidates][:limit]

    async def count(self, owner_id: str | None = None) -> int:
        if owner_id is None:
            return len(self.records)
        return sum(1 for r in self.records.values() if r.owner_id == owner_id)

    def get_provider_name(self) -> str:
        return "memory"


# ---------------------------------------------------------------------------
# Generation fake
# ---------------------------------------------------------------------------


class ScriptedGenerationProvider(IGenerationProvider):
    """Streams a fixed list of deltas.

    ``delay`` sleeps before each delta; ``fail_after`` raises
    :class:`GenerationError` once that many deltas have been sent.  Every
    call's arguments are recorded in ``requests``.
    """

    def __init__(
        self,
        deltas: Sequence[str] = (),
        delay: float = 0.0,
        fail_after: int | None = None,
        vision_text: str = "text read from image",
        vision: bool = True,
    ) -> None:
        self._deltas = list(deltas)
        self._delay = delay
        self._fail_after = fail_after
        self._vision_text = vision_text
        self._vision = vision
        self._history: list[ChatMessage] = []
        self.requests: list[dict] = []
        self.closed = False

    async def stream_response(
        self,
        query: str,
        context_chunks: Sequence[str] = (),
        image_bytes: bytes | None = None,
    ) -> AsyncIterator[str]:
        self.requests.append(
            {"query": query, "context_chunks": list(context_chunks), "image_bytes": image_bytes}
        )
        try:
            for index, delta in enumerate(self._deltas):
                if self._fail_after is not None and index >= self._fail_after:
                    raise GenerationError("model exploded", provider_name="scripted")
                if self._delay:
                    await asyncio.sleep(self._delay)
                yield delta
            if self._fail_after is not None and self._fail_after >= len(self._deltas):
                raise GenerationError("model exploded", provider_name="scripted")
        finally:
            self.closed = True
        self._history.append(ChatMessage(sender="user", content=query))
        self._history.append(ChatMessage(sender="model", content="".join(self._deltas)))

    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        self.requests.append({"vision": True, "image_bytes": image_bytes, "prompt": prompt})
        return self._vision_text

    def supports_vision(self) -> bool:
        return self._vision

    def get_history(self) -> list[ChatMessage]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()

    def get_provider_name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def memory_chunk_store() -> InMemoryChunkStore:
    return InMemoryChunkStore()


@pytest.fixture
def chroma_chunk_store(tmp_path):
    """A real ChromaDB collection under ``tmp_path``."""
    from tusk.providers.storage.chromadb_chunk_store import ChromaDBChunkStore

    return ChromaDBChunkStore(
        persist_directory=str(tmp_path / "chromadb"),
        collection_name="test_chunks",
    )


@pytest_asyncio.fixture
async def document_store(tmp_path):
    """An initialised SQLite document store under ``tmp_path``."""
    from tusk.providers.storage.sqlite_document_store import SQLiteDocumentStore

    store = SQLiteDocumentStore(tmp_path / "documents.db")
    await store.initialize()
    return store
