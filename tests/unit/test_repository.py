"""Unit tests for DocumentRepository (SQLite documents + in-memory chunks)."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from tests.conftest import InMemoryChunkStore, _hash_to_vector
from tusk.models.document import ChunkRecord, Document
from tusk.providers.storage.repository import DocumentRepository
from tusk.utils.errors import DocumentNotFoundError, PersistenceError


def _chunk(chunk_id: str, document_id: str, text: str, owner: str = "alice", filename: str = "stale.txt") -> ChunkRecord:
    return ChunkRecord(
        chunk_id=chunk_id,
        document_id=document_id,
        content=text,
        embedding=_hash_to_vector(text),
        owner_id=owner,
        filename=filename,
    )


@pytest_asyncio.fixture
async def repository(document_store) -> DocumentRepository:
    return DocumentRepository(document_store, InMemoryChunkStore())


class TestCascadeDelete:
    @pytest.mark.asyncio
    async def test_removes_document_and_its_chunks(self, repository) -> None:
        keep = await repository.insert_document(Document(filename="keep.txt", content=b"k", owner_id="alice"))
        doomed = await repository.insert_document(Document(filename="gone.txt", content=b"g", owner_id="alice"))
        await repository.bulk_insert_chunks(
            [_chunk("c1", doomed, "one"), _chunk("c2", doomed, "two"), _chunk("c3", keep, "three")]
        )

        deleted = await repository.delete_document_cascade(doomed, "alice")

        assert deleted == 2
        assert await repository.count_chunks() == 1
        assert [d.filename for d in await repository.list_documents("alice")] == ["keep.txt"]

    @pytest.mark.asyncio
    async def test_missing_document_leaves_chunks_alone(self, repository) -> None:
        await repository.bulk_insert_chunks([_chunk("c1", "orphan", "text")])
        with pytest.raises(DocumentNotFoundError):
            await repository.delete_document_cascade("orphan", "alice")
        assert await repository.count_chunks() == 1

    @pytest.mark.asyncio
    async def test_chunk_failure_propagates(self, document_store) -> None:
        chunks = InMemoryChunkStore()
        chunks.delete_by_document = AsyncMock(side_effect=PersistenceError("chunk store down"))
        repository = DocumentRepository(document_store, chunks)
        doc_id = await repository.insert_document(Document(filename="a.txt", content=b"a", owner_id="alice"))

        with pytest.raises(PersistenceError, match="chunk store down"):
            await repository.delete_document_cascade(doc_id, "alice")
        assert await repository.list_documents("alice") == []

    @pytest.mark.asyncio
    async def test_delete_by_filename(self, repository) -> None:
        doc_id = await repository.insert_document(Document(filename="a.txt", content=b"a", owner_id="alice"))
        await repository.bulk_insert_chunks([_chunk("c1", doc_id, "text")])
        assert await repository.delete_by_filename("a.txt", "alice") == 1
        with pytest.raises(DocumentNotFoundError):
            await repository.delete_by_filename("a.txt", "alice")

    @pytest.mark.asyncio
    async def test_delete_by_filename_without_stored_id(self) -> None:
        documents = AsyncMock()
        documents.find_by_filename = AsyncMock(
            return_value=Document(filename="a.txt", content=b"a", owner_id="alice")
        )
        chunks = InMemoryChunkStore()
        repository = DocumentRepository(documents, chunks)

        with pytest.raises(DocumentNotFoundError, match="no stored id"):
            await repository.delete_by_filename("a.txt", "alice")
        documents.delete_document.assert_not_called()


class TestSearch:
    @pytest.mark.asyncio
    async def test_hits_carry_document_filename(self, repository) -> None:
        doc_id = await repository.insert_document(Document(filename="report.pdf", content=b"r", owner_id="alice"))
        await repository.bulk_insert_chunks([_chunk("c1", doc_id, "quarterly revenue")])

        hits = await repository.vector_search(_hash_to_vector("quarterly revenue"), 500, 5, "alice")

        assert len(hits) == 1
        assert hits[0].filename == "report.pdf"
        assert hits[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_orphan_chunk_keeps_its_own_filename(self, repository) -> None:
        await repository.bulk_insert_chunks([_chunk("c1", "deleted-doc", "text", filename="old.txt")])
        hits = await repository.vector_search(_hash_to_vector("text"), 500, 5, "alice")
        assert hits[0].filename == "old.txt"

    @pytest.mark.asyncio
    async def test_no_hits(self, repository) -> None:
        assert await repository.vector_search([0.1] * 128, 500, 5, "alice") == []
