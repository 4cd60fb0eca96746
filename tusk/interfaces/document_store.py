"""Abstract base class for the raw-document store."""

from __future__ import annotations

from abc import ABC, abstractmethod

from tusk.models.document import Document, DocumentInfo


# Concrete implementation: SQLiteDocumentStore
# Located in: tusk/providers/storage/
class IDocumentStore(ABC):
    """Contract for persisting uploaded files and their metadata."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""

    @abstractmethod
    async def insert_document(self, document: Document) -> str:
        """Persist *document* and return its newly assigned id.

        ``uploadDate`` and ``size`` metadata are stamped when absent.
        """

    @abstractmethod
    async def get_document(self, document_id: str, owner_id: str) -> Document:
        """Return one document.

        Raises
        ------
        tusk.utils.errors.DocumentNotFoundError
            If the id does not exist for this owner.
        """

    @abstractmethod
    async def find_by_filename(self, filename: str, owner_id: str) -> Document:
        """Return the most recent document named *filename* for this owner."""

    @abstractmethod
    async def list_documents(self, owner_id: str) -> list[DocumentInfo]:
        """Return listing rows for every document of *owner_id*."""

    @abstractmethod
    async def get_file_size(self, filename: str, owner_id: str) -> int:
        """Return the ``size`` metadata of a document as an integer."""

    @abstractmethod
    async def delete_document(self, document_id: str, owner_id: str) -> bool:
        """Delete one document; return ``False`` if nothing matched."""

    @abstractmethod
    async def get_filenames(self, document_ids: list[str]) -> dict[str, str]:
        """Map document ids to filenames; unknown ids are omitted."""

    @abstractmethod
    async def migrate_missing_sizes(self) -> int:
        """Backfill ``size`` metadata where it is missing; return rows updated."""
