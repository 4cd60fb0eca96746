"""PDF text extractor backed by PyMuPDF.

Text is read page by page in document order.  Encrypted PDFs are rejected
rather than returned as empty text.
"""

from __future__ import annotations

import asyncio

import fitz  # PyMuPDF
import structlog

from tusk.interfaces.text_extractor import ITextExtractor
from tusk.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PyMuPDFExtractor(ITextExtractor):
    """Extracts the text layer of a PDF with ``fitz``."""

    def supported_extensions(self) -> frozenset[str]:
        return frozenset({".pdf"})

    async def extract(self, data: bytes) -> str:
        return await asyncio.to_thread(self._extract_sync, data)

    def get_provider_name(self) -> str:
        return "pymupdf"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _extract_sync(self, data: bytes) -> str:
        try:
            pdf = fitz.open(stream=data, filetype="pdf")
        except (fitz.FileDataError, RuntimeError, ValueError) as exc:
            raise ExtractionError(
                message=f"could not open PDF: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        with pdf:
            if pdf.needs_pass:
                raise ExtractionError(
                    message="PDF is encrypted",
                    provider_name=self.get_provider_name(),
                )
            pages = [page.get_text() for page in pdf]

        logger.debug("pdf_text_extracted", pages=len(pages))
        return "".join(pages)
