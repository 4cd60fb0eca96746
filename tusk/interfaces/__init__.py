"""Abstract provider contracts.

Services depend on these ABCs only; concrete adapters live under
``tusk.providers`` and are wired together by the CLI factories.
"""

from tusk.interfaces.chunk_store import IChunkStore
from tusk.interfaces.document_store import IDocumentStore
from tusk.interfaces.embedding_provider import IEmbeddingProvider
from tusk.interfaces.generation_provider import IGenerationProvider
from tusk.interfaces.storage_provider import IStorageProvider
from tusk.interfaces.text_extractor import ITextExtractor

__all__ = [
    "IChunkStore",
    "IDocumentStore",
    "IEmbeddingProvider",
    "IGenerationProvider",
    "IStorageProvider",
    "ITextExtractor",
]
