"""Concurrent embedding scheduler for one document's chunks.

# ─── DESIGN ────────────────────────────────────────────────────────────
#
# The chunk list is cut into fixed-size sub-batches.  Every sub-batch gets
# its own task, but a semaphore caps how many are talking to the embedding
# service at once, so a huge document takes longer rather than hitting
# the service harder.
#
# Each task retries its embed() call with linear backoff.  Successful
# (text, vector) pairs become ChunkRecords and are pushed onto one shared
# asyncio.Queue.  Once every task has finished (the gather barrier) a
# sentinel is pushed, so the single consumer sees a clean end-of-stream.
#
# A sub-batch that never succeeds is recorded as an EmbeddingError and
# does not disturb its siblings.  Records reach the queue in completion
# order, not source order.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import functools
import uuid
from typing import AsyncIterator

import structlog

from tusk.interfaces.embedding_provider import IEmbeddingProvider
from tusk.models.document import ChunkRecord
from tusk.utils.concurrency import retry_with_linear_backoff, throttled_gather
from tusk.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_END_OF_STREAM = object()


class EmbeddingRun:
    """Handle to one in-flight scheduling pass.

    Iterate it (once) to receive :class:`ChunkRecord` objects as sub-batches
    complete; iteration ends after the last sub-batch finishes.  After that,
    :attr:`failures` holds one :class:`EmbeddingError` per failed sub-batch.
    """

    def __init__(self, total_chunks: int, total_batches: int) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._failures: list[EmbeddingError] = []
        self._task: asyncio.Task[None] | None = None
        self._total_chunks = total_chunks
        self._total_batches = total_batches

    @property
    def total_chunks(self) -> int:
        return self._total_chunks

    @property
    def total_batches(self) -> int:
        return self._total_batches

    @property
    def failures(self) -> list[EmbeddingError]:
        return list(self._failures)

    def __aiter__(self) -> AsyncIterator[ChunkRecord]:
        return self._drain()

    async def _drain(self) -> AsyncIterator[ChunkRecord]:
        while True:
            item = await self._queue.get()
            if item is _END_OF_STREAM:
                return
            yield item  # type: ignore[misc]

    async def wait(self) -> list[EmbeddingError]:
        """Wait for every sub-batch task and return the failures."""
        if self._task is not None:
            await self._task
        return self.failures

    async def cancel(self) -> None:
        """Cancel outstanding sub-batches (used when the consumer gives up)."""
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.info("embedding_run_cancelled", total_batches=self._total_batches)


class IngestionScheduler:
    """Dispatches chunk sub-batches to the embedding provider.

    Parameters
    ----------
    embedding_provider:
        Batch embedding capability.
    batch_size:
        Chunks per embedding call (default 16).
    max_concurrent_batches:
        Sub-batches allowed in flight at once (default 4).
    max_attempts:
        Embedding attempts per sub-batch before giving up (default 3).
    backoff_step_seconds:
        Attempt ``n`` waits ``n * backoff_step_seconds`` first (default 0.1).
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        batch_size: int = 16,
        max_concurrent_batches: int = 4,
        max_attempts: int = 3,
        backoff_step_seconds: float = 0.1,
    ) -> None:
        if batch_size < 1 or max_concurrent_batches < 1 or max_attempts < 1:
            raise ValueError("batch_size, max_concurrent_batches and max_attempts must be >= 1")
        self._embedding_provider = embedding_provider
        self._batch_size = batch_size
        self._max_concurrent_batches = max_concurrent_batches
        self._max_attempts = max_attempts
        self._backoff_step = backoff_step_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(
        self,
        texts: list[str],
        document_id: str,
        owner_id: str,
        filename: str,
    ) -> EmbeddingRun:
        """Begin embedding *texts* in the background and return the run handle.

        Must be called from a running event loop.
        """
        batches = [
            texts[start : start + self._batch_size]
            for start in range(0, len(texts), self._batch_size)
        ]
        run = EmbeddingRun(total_chunks=len(texts), total_batches=len(batches))
        run._task = asyncio.create_task(
            self._run(run, batches, document_id, owner_id, filename)
        )
        return run

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(
        self,
        run: EmbeddingRun,
        batches: list[list[str]],
        document_id: str,
        owner_id: str,
        filename: str,
    ) -> None:
        semaphore = asyncio.Semaphore(self._max_concurrent_batches)
        try:
            factories = [
                functools.partial(
                    self._embed_batch, run, idx, batch, document_id, owner_id, filename
                )
                for idx, batch in enumerate(batches)
            ]
            outcomes = await throttled_gather(factories, semaphore, return_exceptions=True)

            for idx, outcome in enumerate(outcomes):
                if not isinstance(outcome, BaseException):
                    continue
                if isinstance(outcome, EmbeddingError):
                    run._failures.append(outcome)
                else:
                    # Anything not already classified (e.g. a bad record) still
                    # only fails its own sub-batch.
                    run._failures.append(
                        EmbeddingError(
                            message=f"sub-batch {idx} failed: {outcome}",
                            provider_name=self._embedding_provider.get_provider_name(),
                            batch_index=idx,
                        )
                    )

            logger.info(
                "embedding_run_complete",
                total_batches=len(batches),
                failed_batches=len(run._failures),
            )
        finally:
            run._queue.put_nowait(_END_OF_STREAM)

    async def _embed_batch(
        self,
        run: EmbeddingRun,
        batch_index: int,
        batch: list[str],
        document_id: str,
        owner_id: str,
        filename: str,
    ) -> int:
        provider_name = self._embedding_provider.get_provider_name()
        try:
            vectors, attempts = await retry_with_linear_backoff(
                lambda: self._embedding_provider.embed(batch),
                max_attempts=self._max_attempts,
                step_seconds=self._backoff_step,
                logger=logger,
                batch_index=batch_index,
            )
        except Exception as exc:
            logger.error(
                "embedding_batch_failed",
                batch_index=batch_index,
                batch_size=len(batch),
                attempts=self._max_attempts,
                error=str(exc),
            )
            raise EmbeddingError(
                message=(
                    f"failed to embed sub-batch {batch_index} after "
                    f"{self._max_attempts} attempts: {exc}"
                ),
                provider_name=provider_name,
                batch_index=batch_index,
                attempts=self._max_attempts,
            ) from exc

        if len(vectors) != len(batch):
            raise EmbeddingError(
                message=(
                    f"sub-batch {batch_index}: expected {len(batch)} embeddings, "
                    f"got {len(vectors)}"
                ),
                provider_name=provider_name,
                batch_index=batch_index,
                attempts=attempts,
            )

        for text, vector in zip(batch, vectors, strict=True):
            await run._queue.put(
                ChunkRecord(
                    chunk_id=str(uuid.uuid4()),
                    document_id=document_id,
                    content=text,
                    embedding=list(vector),
                    owner_id=owner_id,
                    filename=filename,
                )
            )

        logger.debug(
            "embedding_batch_complete",
            batch_index=batch_index,
            batch_size=len(batch),
            attempts=attempts,
        )
        return len(batch)
