"""Text extraction service (file extension -> extractor)."""

from tusk.services.extraction.extraction_service import PLACEHOLDER_TEXT, TextExtractionService

__all__ = ["PLACEHOLDER_TEXT", "TextExtractionService"]
