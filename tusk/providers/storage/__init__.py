"""Storage adapters.

Documents (raw bytes and metadata) are kept in SQLite by
SQLiteDocumentStore; embedded chunks are kept in ChromaDB by
ChromaDBChunkStore.  DocumentRepository combines the two behind
IStorageProvider.
"""

from tusk.providers.storage.chromadb_chunk_store import ChromaDBChunkStore
from tusk.providers.storage.repository import DocumentRepository
from tusk.providers.storage.sqlite_document_store import SQLiteDocumentStore

__all__ = ["ChromaDBChunkStore", "DocumentRepository", "SQLiteDocumentStore"]
