"""Pydantic models shared across Tusk layers."""

from tusk.models.document import ChunkRecord, Document, DocumentInfo
from tusk.models.ingestion import IngestionResult
from tusk.models.retrieval import (
    Answer,
    ChatMessage,
    GenerationResult,
    GenerationState,
    SearchHit,
)

__all__ = [
    "Answer",
    "ChatMessage",
    "ChunkRecord",
    "Document",
    "DocumentInfo",
    "GenerationResult",
    "GenerationState",
    "IngestionResult",
    "SearchHit",
]
