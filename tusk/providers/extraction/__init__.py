"""Per-format text extractors (PDF, DOCX, plain text, images)."""

from tusk.providers.extraction.docx_extractor import DocxExtractor
from tusk.providers.extraction.pdf_extractor import PyMuPDFExtractor
from tusk.providers.extraction.plain_text_extractor import PlainTextExtractor
from tusk.providers.extraction.vision_extractor import IMAGE_EXTENSIONS, VisionExtractor

__all__ = [
    "DocxExtractor",
    "IMAGE_EXTENSIONS",
    "PlainTextExtractor",
    "PyMuPDFExtractor",
    "VisionExtractor",
]
