"""Ollama generation provider adapter.

Ollama exposes an OpenAI-compatible ``/v1`` API, so this adapter reuses
:class:`OpenAIGenerationProvider` with the client pointed at the local
server.  Defaults to ``llama3.1`` for text and ``llava`` for images.

Setup: install Ollama, then ``ollama pull llama3.1`` (and ``ollama pull
llava`` for images).  Set OLLAMA_BASE_URL=http://localhost:11434
"""

from __future__ import annotations

import httpx
import openai

from tusk.config.settings import Settings
from tusk.providers.llm.openai_provider import OpenAIGenerationProvider


class OllamaGenerationProvider(OpenAIGenerationProvider):
    """Generation provider backed by a local Ollama server."""

    def __init__(self, settings: Settings, system_prompt: str | None = None) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        super().__init__(settings, system_prompt=system_prompt)
        self._text_model = settings.ollama_text_model
        self._vision_model = settings.ollama_vision_model
        self._has_vision = bool(settings.ollama_vision_model)
        self._provider_label = "ollama"

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama server answers on ``/api/tags``."""
        if not self._base_url:
            return False
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
            return response.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False

    def _build_client(self) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            # The SDK requires a non-empty key; Ollama ignores it.
            api_key="ollama",
            timeout=openai.Timeout(60.0, connect=5.0),
        )
