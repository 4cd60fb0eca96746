"""Image text extractor that delegates to a vision-capable model.

Composes an :class:`IGenerationProvider` into an :class:`ITextExtractor`:
the image is sent with a transcription prompt and the model's reply is
the extracted text.
"""

from __future__ import annotations

import structlog

from tusk.interfaces.generation_provider import IGenerationProvider
from tusk.interfaces.text_extractor import ITextExtractor
from tusk.utils.errors import ExtractionError, GenerationError

logger = structlog.get_logger(logger_name=__name__)

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"})

_VISION_PROMPT = """\
Extract all readable text from this image.
Return only the text, preserving line breaks and reading order.
If the image contains no text, describe its content in one or two sentences."""


class VisionExtractor(ITextExtractor):
    """Reads images through the generation provider's vision model."""

    def __init__(self, generation_provider: IGenerationProvider, prompt: str = _VISION_PROMPT) -> None:
        self._provider = generation_provider
        self._prompt = prompt

    def supported_extensions(self) -> frozenset[str]:
        return IMAGE_EXTENSIONS

    async def extract(self, data: bytes) -> str:
        if not self._provider.supports_vision():
            raise ExtractionError(
                message=f"{self._provider.get_provider_name()} has no vision model configured",
                provider_name=self.get_provider_name(),
            )
        try:
            text = await self._provider.vision_extract(data, self._prompt)
        except GenerationError as exc:
            raise ExtractionError(
                message=f"vision extraction failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug(
            "vision_text_extracted",
            provider=self._provider.get_provider_name(),
            chars=len(text),
        )
        return text

    def get_provider_name(self) -> str:
        return "vision"
