"""Document and chunk data models.

A **Document** is one uploaded file: its raw bytes, a string metadata map
(``uploadDate`` and ``size``) and the owner it belongs to.  A **ChunkRecord**
is one embedded text window of a document, ready for a bulk write.

The owner id is copied onto every chunk at creation time so vector search
can filter by owner without consulting the documents table.  Chunks are
never updated; they are deleted together with their document.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# Metadata keys written at insert time.
UPLOAD_DATE_KEY = "uploadDate"
SIZE_KEY = "size"


class Document(BaseModel):
    """An uploaded source file as persisted by the document store."""

    model_config = ConfigDict(frozen=True)

    document_id: str | None = Field(
        default=None,
        description="Opaque id assigned by the store at insert time.",
    )
    filename: str = Field(description="Original filename, including extension.")
    content: bytes = Field(default=b"", description="Raw file bytes.")
    metadata: dict[str, str] = Field(
        default_factory=dict,
        description="String metadata; includes uploadDate (RFC 3339) and size.",
    )
    owner_id: str = Field(description="Tenant / user that owns this document.")


class DocumentInfo(BaseModel):
    """Listing row for a stored document (no content)."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    filename: str
    size: int = Field(ge=0)
    formatted_size: str
    upload_date: str | None = None


class ChunkRecord(BaseModel):
    """One embedded text window, tagged with its document and owner."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Unique identifier (UUID) for this chunk.")
    document_id: str = Field(description="Id of the owning document.")
    content: str = Field(description="The window's text.")
    embedding: list[float] = Field(description="Embedding vector for ``content``.")
    owner_id: str = Field(description="Copy of the owning document's owner id.")
    filename: str = Field(description="Source filename, kept for display.")
