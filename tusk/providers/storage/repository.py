"""Storage facade combining the document store and the chunk store.

Documents (raw bytes + metadata) live in SQLite; chunk vectors live in
ChromaDB.  There is no transaction across the two: a document can exist with
zero or some of its chunks, and deleting a document is an explicit two-step
operation (document row first, then its chunks).
"""

from __future__ import annotations

import structlog

from tusk.interfaces.chunk_store import IChunkStore
from tusk.interfaces.document_store import IDocumentStore
from tusk.interfaces.storage_provider import IStorageProvider
from tusk.models.document import ChunkRecord, Document, DocumentInfo
from tusk.models.retrieval import SearchHit
from tusk.utils.errors import DocumentNotFoundError, PersistenceError

logger = structlog.get_logger(logger_name=__name__)


class DocumentRepository(IStorageProvider):
    """The storage operations used by the ingestion and query services.

    Parameters
    ----------
    document_store:
        Persists uploaded files and their metadata.
    chunk_store:
        Persists embedded chunks and answers vector searches.
    """

    def __init__(self, document_store: IDocumentStore, chunk_store: IChunkStore) -> None:
        self._documents = document_store
        self._chunks = chunk_store

    async def initialize(self) -> None:
        await self._documents.initialize()

    # ------------------------------------------------------------------
    # IStorageProvider implementation
    # ------------------------------------------------------------------

    async def insert_document(self, document: Document) -> str:
        return await self._documents.insert_document(document)

    async def bulk_insert_chunks(self, records: list[ChunkRecord]) -> int:
        return await self._chunks.bulk_insert_chunks(records)

    async def delete_document_cascade(self, document_id: str, owner_id: str) -> int:
        """Delete the document, then every chunk that references it.

        Raises
        ------
        DocumentNotFoundError
            If the document does not exist for *owner_id*; no chunks are
            touched in that case.
        PersistenceError
            If the chunk step fails after the document row was removed.
        """
        deleted = await self._documents.delete_document(document_id, owner_id)
        if not deleted:
            raise DocumentNotFoundError(provider_name="repository")

        try:
            chunk_count = await self._chunks.delete_by_document(document_id, owner_id)
        except PersistenceError:
            logger.error(
                "cascade_chunk_delete_failed",
                document_id=document_id,
                owner_id=owner_id,
            )
            raise

        logger.info(
            "document_cascade_deleted",
            document_id=document_id,
            owner_id=owner_id,
            chunks_deleted=chunk_count,
        )
        return chunk_count

    async def vector_search(
        self,
        query_vector: list[float],
        num_candidates: int,
        limit: int,
        owner_id: str,
    ) -> list[SearchHit]:
        """Search the owner's chunks and resolve each hit's filename.

        The filename comes from the documents table; the copy stored on the
        chunk is used only when the document row is gone.
        """
        hits = await self._chunks.vector_search(query_vector, num_candidates, limit, owner_id)
        if not hits:
            return []

        filenames = await self._documents.get_filenames([hit.document_id for hit in hits])
        return [
            hit.model_copy(update={"filename": filenames.get(hit.document_id, hit.filename)})
            for hit in hits
        ]

    # ------------------------------------------------------------------
    # Document management
    # ------------------------------------------------------------------

    async def get_document(self, document_id: str, owner_id: str) -> Document:
        return await self._documents.get_document(document_id, owner_id)

    async def find_by_filename(self, filename: str, owner_id: str) -> Document:
        return await self._documents.find_by_filename(filename, owner_id)

    async def list_documents(self, owner_id: str) -> list[DocumentInfo]:
        return await self._documents.list_documents(owner_id)

    async def get_file_size(self, filename: str, owner_id: str) -> int:
        return await self._documents.get_file_size(filename, owner_id)

    async def delete_by_filename(self, filename: str, owner_id: str) -> int:
        """Cascade-delete the most recent document named *filename*."""
        document = await self._documents.find_by_filename(filename, owner_id)
        if document.document_id is None:
            raise DocumentNotFoundError(
                message=f"{filename} has no stored id",
                provider_name="repository",
            )
        return await self.delete_document_cascade(document.document_id, owner_id)

    async def migrate_missing_sizes(self) -> int:
        return await self._documents.migrate_missing_sizes()

    async def count_chunks(self, owner_id: str | None = None) -> int:
        return await self._chunks.count(owner_id)
