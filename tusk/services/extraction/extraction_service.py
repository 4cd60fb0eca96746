"""Dispatches raw uploads to the extractor registered for their extension."""

from __future__ import annotations

from pathlib import PurePath
from typing import Sequence

import structlog

from tusk.interfaces.text_extractor import ITextExtractor
from tusk.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

PLACEHOLDER_TEXT = "Text extraction failed"


class TextExtractionService:
    """Routes a file to one :class:`ITextExtractor` by extension.

    When two extractors claim the same extension, the one listed first
    wins.
    """

    def __init__(self, extractors: Sequence[ITextExtractor]) -> None:
        self._by_extension: dict[str, ITextExtractor] = {}
        for extractor in extractors:
            for extension in extractor.supported_extensions():
                self._by_extension.setdefault(extension.lower(), extractor)

    def supported_extensions(self) -> frozenset[str]:
        return frozenset(self._by_extension)

    async def extract(self, filename: str, data: bytes) -> str:
        """Return the text of *data*, chosen by the extension of *filename*.

        Raises
        ------
        ExtractionError
            If no extractor handles the extension, or the extractor fails.
        """
        extension = PurePath(filename).suffix.lower()
        extractor = self._by_extension.get(extension)
        if extractor is None:
            raise ExtractionError(
                message=f"unsupported file type: {extension or '(none)'}",
            )
        text = await extractor.extract(data)
        logger.debug(
            "text_extracted",
            filename=filename,
            extractor=extractor.get_provider_name(),
            chars=len(text),
        )
        return text

    async def extract_or_placeholder(self, filename: str, data: bytes) -> tuple[str, bool]:
        """Like :meth:`extract`, but never raises :class:`ExtractionError`.

        Returns
        -------
        tuple[str, bool]
            The text and ``False``, or :data:`PLACEHOLDER_TEXT` and ``True``
            when extraction failed.
        """
        try:
            return await self.extract(filename, data), False
        except ExtractionError as exc:
            logger.warning("text_extraction_failed", filename=filename, error=str(exc))
            return PLACEHOLDER_TEXT, True
