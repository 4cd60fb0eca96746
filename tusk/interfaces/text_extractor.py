"""Abstract base class for per-format text extractors."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: PyMuPDFExtractor, DocxExtractor,
# PlainTextExtractor, VisionExtractor
# Located in: tusk/providers/extraction/
class ITextExtractor(ABC):
    """Converts the raw bytes of one file format into plain text."""

    @abstractmethod
    def supported_extensions(self) -> frozenset[str]:
        """Return lower-case extensions (with dot) this extractor handles."""

    @abstractmethod
    async def extract(self, data: bytes) -> str:
        """Return the text content of *data*.

        Raises
        ------
        tusk.utils.errors.ExtractionError
            If the payload is corrupt, encrypted or otherwise unreadable.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this extractor."""
