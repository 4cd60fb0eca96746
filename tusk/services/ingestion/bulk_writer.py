"""Threshold-based bulk writer for embedded chunk records.

Records are buffered in memory and written with one unordered bulk insert
each time the buffer reaches ``flush_threshold``.  The remainder is written
when the input stream ends.  A failed flush stops the writer and propagates;
batches flushed before it stay committed.

The writer is single-consumer: only the task running :meth:`consume` (or
calling :meth:`add` / :meth:`flush`) touches the buffer.
"""

from __future__ import annotations

from typing import AsyncIterable

import structlog

from tusk.interfaces.chunk_store import IChunkStore
from tusk.interfaces.storage_provider import IStorageProvider
from tusk.models.document import ChunkRecord

logger = structlog.get_logger(logger_name=__name__)


class BulkChunkWriter:
    """Buffers chunk records and flushes them as bulk writes.

    Parameters
    ----------
    store:
        Anything with an ``async bulk_insert_chunks(records)`` method; the
        storage facade in production, a chunk store in tests.
    flush_threshold:
        Buffered records that trigger a flush (default 500).
    """

    def __init__(
        self,
        store: IStorageProvider | IChunkStore,
        flush_threshold: int = 500,
    ) -> None:
        if flush_threshold < 1:
            raise ValueError(f"flush_threshold must be >= 1, got {flush_threshold}")
        self._store = store
        self._flush_threshold = flush_threshold
        self._buffer: list[ChunkRecord] = []
        self._written = 0
        self._flushes = 0

    @property
    def pending(self) -> int:
        """Records buffered but not yet written."""
        return len(self._buffer)

    @property
    def written(self) -> int:
        return self._written

    @property
    def flushes(self) -> int:
        return self._flushes

    async def add(self, record: ChunkRecord) -> None:
        """Buffer *record*, flushing once the threshold is reached."""
        self._buffer.append(record)
        if len(self._buffer) >= self._flush_threshold:
            await self.flush()

    async def flush(self) -> int:
        """Write everything buffered; return the number of records written."""
        if not self._buffer:
            return 0
        batch = self._buffer
        self._buffer = []
        written = await self._store.bulk_insert_chunks(batch)
        self._written += written
        self._flushes += 1
        logger.info(
            "bulk_write_flushed",
            batch_size=len(batch),
            total_written=self._written,
        )
        return written

    async def consume(self, records: AsyncIterable[ChunkRecord]) -> int:
        """Drain *records*, flushing at the threshold and at end of stream.

        Returns
        -------
        int
            Total records written by this writer.
        """
        async for record in records:
            await self.add(record)
        await self.flush()
        return self._written
