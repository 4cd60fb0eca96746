"""ChromaDB chunk store adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IChunkStore`.  Each
chunk is stored with its pre-computed embedding and three metadata fields
(``document_id``, ``owner_id``, ``filename``) so searches can be filtered by
owner and hits can be traced back to their document.  The collection uses
a cosine HNSW index.

chromadb's client is synchronous; every call runs in a worker thread via
``asyncio.to_thread`` so the event loop stays free for the embedding tasks.
"""

from __future__ import annotations

import asyncio
import os

# Must be set before chromadb is imported.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from tusk.interfaces.chunk_store import IChunkStore
from tusk.models.document import ChunkRecord
from tusk.models.retrieval import SearchHit
from tusk.services.retrieval.vector_query import (
    DOCUMENT_FIELD,
    FILENAME_FIELD,
    OWNER_FIELD,
    build_vector_query,
    rank_results,
    validate_pool,
)
from tusk.utils.errors import PersistenceError, RetrievalError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never meant to run.

    Tusk always passes embeddings explicitly; this keeps chromadb from
    downloading its default ONNX model when the collection is opened.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "tusk uses pre-computed embeddings; chromadb's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBChunkStore(IChunkStore):
    """Chunk vectors persisted in a local ChromaDB collection."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "tusk_chunks",
        client: chromadb.ClientAPI | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
            embedding_function=_NoopEmbeddingFunction(),
        )

    # ------------------------------------------------------------------
    # IChunkStore implementation
    # ------------------------------------------------------------------

    async def bulk_insert_chunks(self, records: list[ChunkRecord]) -> int:
        """Insert *records* without ordering guarantees.

        The whole batch is tried in one call first.  If that fails, each
        record is inserted on its own so one bad record cannot hold back the
        rest; the ids that still fail are reported in a single
        :class:`PersistenceError` after the others are written.
        """
        if not records:
            return 0

        try:
            await asyncio.to_thread(self._add, records)
            logger.info("chromadb_bulk_insert", count=len(records))
            return len(records)
        except Exception as exc:
            logger.warning(
                "chromadb_bulk_insert_fallback",
                count=len(records),
                error=str(exc),
            )

        failed: list[str] = []
        last_error: Exception | None = None
        for record in records:
            try:
                await asyncio.to_thread(self._add, [record])
            except Exception as exc:
                failed.append(record.chunk_id)
                last_error = exc
                logger.warning(
                    "chromadb_chunk_insert_failed",
                    chunk_id=record.chunk_id,
                    error=str(exc),
                )

        written = len(records) - len(failed)
        if failed:
            raise PersistenceError(
                message=(
                    f"bulk insert wrote {written} of {len(records)} chunks; "
                    f"last error: {last_error}"
                ),
                provider_name=self.get_provider_name(),
                failed_ids=failed,
            )
        logger.info("chromadb_bulk_insert", count=written, per_record=True)
        return written

    async def delete_by_document(self, document_id: str, owner_id: str) -> int:
        """Delete all chunks of one document owned by *owner_id*."""
        where = {"$and": [{DOCUMENT_FIELD: document_id}, {OWNER_FIELD: owner_id}]}
        try:
            existing = await asyncio.to_thread(self._collection.get, where=where, include=[])
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                await asyncio.to_thread(self._collection.delete, where=where)
        except Exception as exc:
            raise PersistenceError(
                message=f"ChromaDB delete_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_delete_by_document",
            document_id=document_id,
            deleted_count=count,
        )
        return count

    async def vector_search(
        self,
        query_vector: list[float],
        num_candidates: int,
        limit: int,
        owner_id: str,
    ) -> list[SearchHit]:
        """Approximate nearest-neighbour search scoped to one owner."""
        validate_pool(num_candidates, limit)
        kwargs = build_vector_query(query_vector, num_candidates, owner_id)
        try:
            stored = await asyncio.to_thread(self._collection.count)
            if stored == 0:
                return []
            # HNSW rejects pools larger than the index on some chromadb versions.
            kwargs["n_results"] = min(num_candidates, stored)
            results = await asyncio.to_thread(self._collection.query, **kwargs)
        except Exception as exc:
            raise RetrievalError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        hits = rank_results(results, limit)
        logger.info(
            "chromadb_vector_search",
            num_candidates=num_candidates,
            limit=limit,
            results_count=len(hits),
            top_score=hits[0].score if hits else 0.0,
        )
        return hits

    async def count(self, owner_id: str | None = None) -> int:
        try:
            if owner_id is None:
                return await asyncio.to_thread(self._collection.count)
            existing = await asyncio.to_thread(
                self._collection.get, where={OWNER_FIELD: owner_id}, include=[]
            )
        except Exception as exc:
            raise RetrievalError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(existing["ids"]) if existing["ids"] else 0

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _add(self, records: list[ChunkRecord]) -> None:
        self._collection.add(
            ids=[r.chunk_id for r in records],
            embeddings=[r.embedding for r in records],
            documents=[r.content for r in records],
            metadatas=[self._record_to_metadata(r) for r in records],
        )

    @staticmethod
    def _record_to_metadata(record: ChunkRecord) -> dict[str, str]:
        return {
            DOCUMENT_FIELD: record.document_id,
            OWNER_FIELD: record.owner_id,
            FILENAME_FIELD: record.filename,
        }
