"""Utility modules for Tusk.

- **errors** -- Exception hierarchy rooted at TuskError; each pipeline stage
  raises its own subclass so callers can handle failures granularly.
- **concurrency** -- semaphore-bounded gather and linear-backoff retry used
  by the ingestion scheduler.
- **logging** -- structlog setup with console output in development and
  JSON in production.
- **formatting** -- byte-size rendering for document listings.
"""

from tusk.utils.concurrency import retry_with_linear_backoff, throttled_gather
from tusk.utils.errors import (
    ConfigurationError,
    DocumentNotFoundError,
    EmbeddingError,
    ExtractionError,
    GenerationError,
    IngestionError,
    PersistenceError,
    ProviderUnavailableError,
    RetrievalError,
    TuskError,
)
from tusk.utils.formatting import format_file_size
from tusk.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "DocumentNotFoundError",
    "EmbeddingError",
    "ExtractionError",
    "GenerationError",
    "IngestionError",
    "PersistenceError",
    "ProviderUnavailableError",
    "RetrievalError",
    "TuskError",
    "configure_logging",
    "format_file_size",
    "get_logger",
    "retry_with_linear_backoff",
    "throttled_gather",
]
