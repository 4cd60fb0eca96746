"""Abstract base class for the storage facade used by the pipelines.

The ingestion and query services only need four storage operations:
insert a document, bulk-insert chunks, delete a document with all of its
chunks, and search chunks by vector.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from tusk.models.document import ChunkRecord, Document
from tusk.models.retrieval import SearchHit


# Concrete implementation: DocumentRepository (tusk/providers/storage/repository.py)
class IStorageProvider(ABC):
    """Contract for the combined document + chunk storage."""

    @abstractmethod
    async def insert_document(self, document: Document) -> str:
        """Persist a document and return its id."""

    @abstractmethod
    async def bulk_insert_chunks(self, records: list[ChunkRecord]) -> int:
        """Unordered bulk write of chunk records; returns the number written."""

    @abstractmethod
    async def delete_document_cascade(self, document_id: str, owner_id: str) -> int:
        """Delete a document, then all of its chunks; return chunks deleted."""

    @abstractmethod
    async def vector_search(
        self,
        query_vector: list[float],
        num_candidates: int,
        limit: int,
        owner_id: str,
    ) -> list[SearchHit]:
        """Ranked chunks for *owner_id* with resolved filenames."""
