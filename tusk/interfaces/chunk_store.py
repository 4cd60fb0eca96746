"""Abstract base class for chunk vector stores."""

from __future__ import annotations

from abc import ABC, abstractmethod

from tusk.models.document import ChunkRecord
from tusk.models.retrieval import SearchHit


# Concrete implementation: ChromaDBChunkStore
# Located in: tusk/providers/storage/
class IChunkStore(ABC):
    """Contract for persisting embedded chunks and searching them by vector."""

    @abstractmethod
    async def bulk_insert_chunks(self, records: list[ChunkRecord]) -> int:
        """Insert *records* as one unordered bulk write.

        A failure on one record must not prevent the others from being
        written.

        Returns
        -------
        int
            Number of records written.

        Raises
        ------
        tusk.utils.errors.PersistenceError
            If any record could not be written; ``failed_ids`` names them.
        """

    @abstractmethod
    async def delete_by_document(self, document_id: str, owner_id: str) -> int:
        """Delete every chunk of *document_id* owned by *owner_id*; return the count."""

    @abstractmethod
    async def vector_search(
        self,
        query_vector: list[float],
        num_candidates: int,
        limit: int,
        owner_id: str,
    ) -> list[SearchHit]:
        """Return at most *limit* of *owner_id*'s chunks, best score first.

        ``num_candidates`` must exceed ``limit``; it sizes the approximate
        nearest-neighbour pool examined before truncation.
        """

    @abstractmethod
    async def count(self, owner_id: str | None = None) -> int:
        """Return the number of stored chunks, optionally for one owner."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
