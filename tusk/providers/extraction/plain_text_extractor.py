"""Plain-text and Markdown extractor."""

from __future__ import annotations

from tusk.interfaces.text_extractor import ITextExtractor


class PlainTextExtractor(ITextExtractor):
    """Decodes ``.txt`` and ``.md`` files as UTF-8.

    Undecodable bytes are replaced rather than rejected, so a stray Latin-1
    character doesn't cost the whole document.
    """

    def supported_extensions(self) -> frozenset[str]:
        return frozenset({".txt", ".md"})

    async def extract(self, data: bytes) -> str:
        return data.decode("utf-8", errors="replace")

    def get_provider_name(self) -> str:
        return "plain_text"
