"""Word-boundary text chunking with character-measured overlapping windows.

Text is split on whitespace and words are packed into a buffer until the
next word would push it past ``window_size`` characters.  The buffer is then
emitted (stripped) and the next buffer is seeded with its trailing
``overlap`` characters, so context that straddles a boundary appears in both
neighbouring chunks.  Words are never split; a single word longer than the
window becomes its own oversized chunk.

Output order follows the source text.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(logger_name=__name__)


class TextChunker:
    """Splits text into overlapping windows measured in characters.

    Parameters
    ----------
    window_size:
        Maximum characters per chunk (default 2048).
    overlap:
        Trailing characters of one chunk carried into the next (default 50).
    """

    def __init__(self, window_size: int = 2048, overlap: int = 50) -> None:
        if overlap <= 0 or window_size <= overlap:
            raise ValueError(
                f"expected window_size > overlap > 0, got window_size={window_size}, overlap={overlap}"
            )
        self._window_size = window_size
        self._overlap = overlap

    @property
    def window_size(self) -> int:
        return self._window_size

    @property
    def overlap(self) -> int:
        return self._overlap

    def chunk(self, text: str) -> list[str]:
        """Split *text* into overlapping windows.

        Empty or whitespace-only input returns an empty list.
        """
        words = text.split()
        if not words:
            return []

        chunks: list[str] = []
        buffer = ""
        for word in words:
            if buffer and len(buffer) + len(word) + 1 > self._window_size:
                chunks.append(buffer.strip())
                buffer = buffer[max(len(buffer) - self._overlap, 0):] + " "
            buffer += word + " "

        if buffer:
            chunks.append(buffer.strip())

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            text_length=len(text),
            window_size=self._window_size,
        )
        return chunks
