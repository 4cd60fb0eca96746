"""Word (.docx) text extractor backed by python-docx."""

from __future__ import annotations

import asyncio
import io
import zipfile

import docx
from docx.opc.exceptions import PackageNotFoundError
import structlog

from tusk.interfaces.text_extractor import ITextExtractor
from tusk.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class DocxExtractor(ITextExtractor):
    """Reads every paragraph's runs, one line per paragraph."""

    def supported_extensions(self) -> frozenset[str]:
        return frozenset({".docx"})

    async def extract(self, data: bytes) -> str:
        return await asyncio.to_thread(self._extract_sync, data)

    def get_provider_name(self) -> str:
        return "python-docx"

    def _extract_sync(self, data: bytes) -> str:
        try:
            document = docx.Document(io.BytesIO(data))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
            raise ExtractionError(
                message=f"could not open DOCX: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        lines = ["".join(run.text for run in paragraph.runs) for paragraph in document.paragraphs]
        logger.debug("docx_text_extracted", paragraphs=len(lines))
        return "".join(f"{line}\n" for line in lines)
