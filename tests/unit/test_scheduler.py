"""Unit tests for the concurrent embedding scheduler."""

from __future__ import annotations

import asyncio

import pytest

from tests.conftest import FlakyEmbeddingProvider, MockEmbeddingProvider
from tusk.services.ingestion.scheduler import IngestionScheduler
from tusk.utils.errors import EmbeddingError


def _texts(n: int) -> list[str]:
    return [f"chunk number {i}" for i in range(n)]


async def _collect(run) -> list:
    return [record async for record in run]


class TestSchedulerConfig:
    def test_rejects_zero_batch_size(self) -> None:
        with pytest.raises(ValueError):
            IngestionScheduler(MockEmbeddingProvider(), batch_size=0)

    def test_rejects_zero_concurrency(self) -> None:
        with pytest.raises(ValueError):
            IngestionScheduler(MockEmbeddingProvider(), max_concurrent_batches=0)


class TestSchedulerRun:
    @pytest.mark.asyncio
    async def test_all_chunks_become_records(self) -> None:
        scheduler = IngestionScheduler(MockEmbeddingProvider(), batch_size=4)
        run = scheduler.start(_texts(10), "doc-1", "alice", "notes.txt")

        records = await _collect(run)
        failures = await run.wait()

        assert failures == []
        assert run.total_batches == 3
        assert sorted(r.content for r in records) == sorted(_texts(10))
        assert {r.document_id for r in records} == {"doc-1"}
        assert {r.owner_id for r in records} == {"alice"}
        assert {r.filename for r in records} == {"notes.txt"}
        assert len({r.chunk_id for r in records}) == 10
        assert all(len(r.embedding) == 128 for r in records)

    @pytest.mark.asyncio
    async def test_empty_input_ends_immediately(self) -> None:
        run = IngestionScheduler(MockEmbeddingProvider()).start([], "d", "o", "f")
        assert await _collect(run) == []
        assert await run.wait() == []
        assert run.total_batches == 0

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self) -> None:
        provider = FlakyEmbeddingProvider(failures_per_batch=2)
        scheduler = IngestionScheduler(
            provider, batch_size=3, max_attempts=3, backoff_step_seconds=0.0
        )
        texts = _texts(7)
        run = scheduler.start(texts, "doc", "owner", "f.txt")

        records = await _collect(run)
        failures = await run.wait()

        assert failures == []
        assert len(records) == 7
        for start in range(0, 7, 3):
            assert provider.attempts_for(texts[start : start + 3]) == 3

    @pytest.mark.asyncio
    async def test_exhausted_batch_fails_alone(self) -> None:
        texts = _texts(9)
        provider = FlakyEmbeddingProvider(always_fail=[texts[4]])
        scheduler = IngestionScheduler(
            provider, batch_size=3, max_attempts=3, backoff_step_seconds=0.0
        )
        run = scheduler.start(texts, "doc", "owner", "f.txt")

        records = await _collect(run)
        failures = await run.wait()

        assert len(records) == 6
        assert texts[4] not in {r.content for r in records}
        assert len(failures) == 1
        assert isinstance(failures[0], EmbeddingError)
        assert failures[0].batch_index == 1
        assert failures[0].attempts == 3
        assert provider.attempts_for(texts[3:6]) == 3

    @pytest.mark.asyncio
    async def test_count_mismatch_fails_without_retry(self) -> None:
        class _ShortProvider(MockEmbeddingProvider):
            async def embed(self, texts: list[str]) -> list[list[float]]:
                self.calls.append(list(texts))
                return [[0.1] * 128 for _ in texts[:-1]]

        provider = _ShortProvider()
        run = IngestionScheduler(provider, batch_size=5).start(_texts(5), "d", "o", "f")

        records = await _collect(run)
        failures = await run.wait()

        assert records == []
        assert len(failures) == 1
        assert "expected 5 embeddings" in str(failures[0])
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self) -> None:
        provider = FlakyEmbeddingProvider(delay=0.01)
        scheduler = IngestionScheduler(provider, batch_size=1, max_concurrent_batches=3)
        run = scheduler.start(_texts(12), "d", "o", "f")

        records = await _collect(run)
        await run.wait()

        assert len(records) == 12
        assert 1 <= provider.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_cancel_stops_outstanding_batches(self) -> None:
        provider = FlakyEmbeddingProvider(delay=0.5)
        scheduler = IngestionScheduler(provider, batch_size=1, max_concurrent_batches=1)
        run = scheduler.start(_texts(5), "d", "o", "f")
        await asyncio.sleep(0.01)

        await run.cancel()

        assert sum(provider.attempts_for([t]) for t in _texts(5)) <= 1
