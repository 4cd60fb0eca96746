"""Custom exception hierarchy for Tusk.

All application exceptions inherit from :class:`TuskError`, which carries an
optional ``provider_name`` so error handlers can identify which backend
(e.g. "openai", "chromadb", "sqlite") caused the failure.

The hierarchy follows the pipeline stages:

    TuskError  (base -- catch-all for any Tusk error)
    +-- ExtractionError          (raw bytes -> text)
    +-- EmbeddingError           (embedding API failure, per sub-batch)
    +-- PersistenceError         (document or chunk writes)
    |   +-- DocumentNotFoundError
    +-- RetrievalError           (query embedding or vector search)
    +-- GenerationError          (streaming model output)
    +-- IngestionError           (one or more sub-batches never embedded)
    +-- ConfigurationError       (startup / missing config)
    +-- ProviderUnavailableError (external service down / unreachable)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from tusk.models.ingestion import IngestionResult


class TuskError(Exception):
    """Base exception for all Tusk errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets,
    e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class ExtractionError(TuskError):
    """Raised when a payload cannot be converted to text (unsupported or corrupt)."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(TuskError):
    """Raised when an embedding call fails.

    When raised by the ingestion scheduler, ``batch_index`` identifies the
    sub-batch and ``attempts`` records how many calls were made before
    giving up.
    """

    def __init__(
        self,
        message: str = "Embedding request failed",
        provider_name: str | None = None,
        batch_index: int | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._batch_index = batch_index
        self._attempts = attempts

    @property
    def batch_index(self) -> int | None:
        return self._batch_index

    @property
    def attempts(self) -> int:
        return self._attempts


class PersistenceError(TuskError):
    """Raised when a document or chunk write fails.

    ``failed_ids`` lists the chunk ids an unordered bulk write could not
    insert.  Records outside that list were committed.
    """

    def __init__(
        self,
        message: str = "Storage write failed",
        provider_name: str | None = None,
        failed_ids: Sequence[str] = (),
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._failed_ids = tuple(failed_ids)

    @property
    def failed_ids(self) -> tuple[str, ...]:
        return self._failed_ids


class DocumentNotFoundError(PersistenceError):
    """Raised when a document does not exist for the requesting owner."""

    def __init__(
        self,
        message: str = "file not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionError(TuskError):
    """Raised when a document was stored but some chunk sub-batches were not.

    The partial :class:`~tusk.models.ingestion.IngestionResult` is attached
    so callers can report what was written.
    """

    def __init__(
        self,
        message: str = "Ingestion incomplete",
        provider_name: str | None = None,
        result: IngestionResult | None = None,
        errors: Sequence[BaseException] = (),
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._result = result
        self._errors = tuple(errors)

    @property
    def result(self) -> IngestionResult | None:
        return self._result

    @property
    def errors(self) -> tuple[BaseException, ...]:
        return self._errors


# ---------------------------------------------------------------------------
# Query-time errors
# ---------------------------------------------------------------------------

class RetrievalError(TuskError):
    """Raised when the query cannot be embedded or the vector search fails."""

    def __init__(
        self,
        message: str = "Vector search failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class GenerationError(TuskError):
    """Raised when the generation model fails mid-stream or before streaming."""

    def __init__(
        self,
        message: str = "Response generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration / provider errors
# ---------------------------------------------------------------------------

class ConfigurationError(TuskError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(TuskError):
    """Raised when an external service or provider is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
