"""Ingestion pipeline: chunking, concurrent embedding and bulk chunk writes."""

from tusk.services.ingestion.bulk_writer import BulkChunkWriter
from tusk.services.ingestion.chunker import TextChunker
from tusk.services.ingestion.ingestion_service import IngestionService
from tusk.services.ingestion.scheduler import EmbeddingRun, IngestionScheduler

__all__ = [
    "BulkChunkWriter",
    "EmbeddingRun",
    "IngestionScheduler",
    "IngestionService",
    "TextChunker",
]
