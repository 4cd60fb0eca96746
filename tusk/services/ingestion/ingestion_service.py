"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **extract -> store document -> chunk -> embed -> bulk write**.

# ─── DESIGN ────────────────────────────────────────────────────────────
#
# Embedding and writing overlap.  The scheduler embeds sub-batches
# concurrently and streams ChunkRecords onto its queue; the bulk writer
# is the only consumer and flushes every ``bulk_write_threshold`` records.
#
#   extract ──> insert_document ──> chunk ──> scheduler.start()
#                                                 │  (records, completion order)
#                                                 v
#                                           BulkChunkWriter.consume()
#                                                 │
#                                           run.wait() ──> IngestionResult
#
# The document row is written before any chunk, and it is never rolled
# back: a failed sub-batch leaves the document with the chunks that did
# succeed.  If the writer itself fails, the remaining embedding work is
# cancelled before the error propagates.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import time
from pathlib import Path

import structlog

from tusk.interfaces.storage_provider import IStorageProvider
from tusk.models.document import Document
from tusk.models.ingestion import IngestionResult
from tusk.services.extraction.extraction_service import TextExtractionService
from tusk.services.ingestion.bulk_writer import BulkChunkWriter
from tusk.services.ingestion.chunker import TextChunker
from tusk.services.ingestion.scheduler import IngestionScheduler
from tusk.utils.errors import IngestionError

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Ingests one uploaded file at a time.

    All collaborators are injected, so providers can be swapped (OpenAI ->
    Ollama, ChromaDB -> an in-memory fake) without touching this class.

    Parameters
    ----------
    extraction_service:
        Converts raw bytes to text.
    chunker:
        Splits text into overlapping word-boundary windows.
    scheduler:
        Embeds chunk sub-batches concurrently.
    storage:
        Persists the document and its chunk records.
    bulk_write_threshold:
        Records buffered per bulk write (default 500).
    fail_on_partial:
        Raise :class:`IngestionError` when any sub-batch could not be
        embedded (default ``True``).
    """

    def __init__(
        self,
        extraction_service: TextExtractionService,
        chunker: TextChunker,
        scheduler: IngestionScheduler,
        storage: IStorageProvider,
        bulk_write_threshold: int = 500,
        fail_on_partial: bool = True,
    ) -> None:
        self._extraction = extraction_service
        self._chunker = chunker
        self._scheduler = scheduler
        self._storage = storage
        self._bulk_write_threshold = bulk_write_threshold
        self._fail_on_partial = fail_on_partial

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(self, filename: str, data: bytes, owner_id: str) -> IngestionResult:
        """Store *data* as a document and index its chunks for *owner_id*.

        Returns
        -------
        IngestionResult
            Counts for the run.  ``extraction_failed`` is set when the
            placeholder text was indexed instead of real content.

        Raises
        ------
        IngestionError
            If some sub-batches were never embedded and ``fail_on_partial``
            is set.  The document and the chunks that were written remain.
        PersistenceError
            If the document insert or a bulk chunk write fails.
        """
        start = time.perf_counter()
        with structlog.contextvars.bound_contextvars(filename=filename, owner_id=owner_id):
            text, extraction_failed = await self._extraction.extract_or_placeholder(
                filename, data
            )

            document_id = await self._storage.insert_document(
                Document(filename=filename, content=data, owner_id=owner_id)
            )

            with structlog.contextvars.bound_contextvars(document_id=document_id):
                chunks = self._chunker.chunk(text)
                run = self._scheduler.start(chunks, document_id, owner_id, filename)
                writer = BulkChunkWriter(
                    self._storage, flush_threshold=self._bulk_write_threshold
                )
                try:
                    written = await writer.consume(run)
                except BaseException:
                    await run.cancel()
                    raise
                failures = await run.wait()

                result = IngestionResult(
                    document_id=document_id,
                    filename=filename,
                    chunks_total=len(chunks),
                    chunks_written=written,
                    failed_batches=len(failures),
                    errors=[str(f) for f in failures],
                    extraction_failed=extraction_failed,
                    ingestion_time=round(time.perf_counter() - start, 3),
                )

                logger.info(
                    "ingestion_complete",
                    chunks_total=result.chunks_total,
                    chunks_written=result.chunks_written,
                    failed_batches=result.failed_batches,
                    extraction_failed=extraction_failed,
                    ingestion_time=result.ingestion_time,
                )

                if failures and self._fail_on_partial:
                    raise IngestionError(
                        message=(
                            f"{len(failures)} of {run.total_batches} sub-batches could not be "
                            f"embedded; {written} of {len(chunks)} chunks stored"
                        ),
                        result=result,
                        errors=failures,
                    )
                return result

    async def ingest_path(self, path: str | Path, owner_id: str) -> IngestionResult:
        """Read *path* from disk and :meth:`ingest` it under its base name."""
        file_path = Path(path)
        data = file_path.read_bytes()
        return await self.ingest(file_path.name, data, owner_id)
