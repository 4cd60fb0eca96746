"""OpenAI-compatible streaming generation provider.

Wraps the ``openai`` async client to implement :class:`IGenerationProvider`.
Answers are requested with ``stream=True`` and yielded delta by delta.  When
``openai_base_url`` is configured (TogetherAI, Fireworks, Groq, ...) the
client points at that URL instead of the default OpenAI endpoint.

The provider keeps a running conversation: the system prompt first, then
each completed user/model exchange, so follow-up questions see earlier
turns.
"""

from __future__ import annotations

import base64
from typing import Any, AsyncIterator, Sequence

import openai
import structlog

from tusk.config.pipeline import GenerationConfig
from tusk.config.settings import Settings
from tusk.interfaces.generation_provider import IGenerationProvider
from tusk.models.retrieval import ChatMessage
from tusk.utils.errors import GenerationError

logger = structlog.get_logger(logger_name=__name__)

_ROLE_BY_SENDER = {"user": "user", "model": "assistant"}


def _detect_media_type(image_bytes: bytes) -> str:
    """Detect the MIME type of an image from its magic bytes."""
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if image_bytes[:2] == b"BM":
        return "image/bmp"
    return "image/jpeg"


def build_prompt(query: str, context_chunks: Sequence[str] = ()) -> str:
    """Join retrieved context and the query into one user turn."""
    return "\n".join([*context_chunks, f"Query: {query}"])


class OpenAIGenerationProvider(IGenerationProvider):
    """Generation provider backed by an OpenAI-compatible chat API.

    Uses ``gpt-4o-mini`` for text and ``gpt-4o`` for image prompts by
    default; both can be overridden through settings.
    """

    def __init__(self, settings: Settings, system_prompt: str | None = None) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key
        self._client = self._build_client()
        self._text_model = settings.openai_text_model or "gpt-4o-mini"
        self._vision_model = settings.openai_vision_model or "gpt-4o"
        self._has_vision = bool(settings.openai_vision_model) or not settings.openai_base_url
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"
        self._system_prompt = system_prompt or GenerationConfig().system_prompt
        self._history: list[ChatMessage] = []

    # ------------------------------------------------------------------
    # IGenerationProvider implementation
    # ------------------------------------------------------------------

    async def stream_response(
        self,
        query: str,
        context_chunks: Sequence[str] = (),
        image_bytes: bytes | None = None,
    ) -> AsyncIterator[str]:
        """Stream the answer to *query* as text deltas.

        The exchange is added to the history only if the stream completes;
        an abandoned or failed stream leaves the history unchanged.
        """
        if image_bytes is not None and not self._has_vision:
            raise GenerationError(
                message="Vision not supported by this provider configuration",
                provider_name=self.get_provider_name(),
            )

        prompt = build_prompt(query, context_chunks)
        model = self._vision_model if image_bytes is not None else self._text_model
        messages = [
            {"role": "system", "content": self._system_prompt},
            *self._history_messages(),
            self._user_message(prompt, image_bytes),
        ]

        try:
            stream = await self._require_client().chat.completions.create(
                model=model,
                messages=messages,
                stream=True,
            )
        except openai.APIError as exc:
            raise GenerationError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        parts: list[str] = []
        try:
            async for event in stream:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    parts.append(delta)
                    yield delta
        except openai.APIError as exc:
            raise GenerationError(
                message=f"{self._provider_label} stream error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        finally:
            await stream.close()

        response = "".join(parts)
        self._history.append(ChatMessage(sender="user", content=prompt))
        self._history.append(ChatMessage(sender="model", content=response))
        logger.info(
            "openai_stream_complete",
            model=model,
            provider=self._provider_label,
            chars=len(response),
            context_chunks=len(context_chunks),
        )

    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Read an image with the vision model and return the full reply."""
        if not self._has_vision:
            raise GenerationError(
                message="Vision not supported by this provider configuration",
                provider_name=self.get_provider_name(),
            )
        try:
            response = await self._require_client().chat.completions.create(
                model=self._vision_model,
                messages=[self._user_message(prompt, image_bytes)],
                max_tokens=4000,
            )
        except openai.APIError as exc:
            raise GenerationError(
                message=f"{self._provider_label} vision API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not response.choices:
            raise GenerationError(
                message=f"{self._provider_label} vision returned no choices",
                provider_name=self.get_provider_name(),
            )
        content = response.choices[0].message.content
        if content is None:
            raise GenerationError(
                message=f"{self._provider_label} vision returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_vision_extract",
            model=self._vision_model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def supports_vision(self) -> bool:
        return self._has_vision

    def get_history(self) -> list[ChatMessage]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return self._provider_label

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_client(self) -> openai.AsyncOpenAI | None:
        """Create the SDK client, or ``None`` when no API key is configured."""
        if not self._api_key:
            return None
        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(60.0, connect=5.0),
        }
        if self._settings.openai_base_url:
            client_kwargs["base_url"] = self._settings.openai_base_url
        return openai.AsyncOpenAI(**client_kwargs)

    def _require_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            raise GenerationError(
                message="no API key configured",
                provider_name=self.get_provider_name(),
            )
        return self._client

    def _history_messages(self) -> list[dict[str, Any]]:
        return [
            {"role": _ROLE_BY_SENDER[msg.sender], "content": msg.content}
            for msg in self._history
        ]

    @staticmethod
    def _user_message(prompt: str, image_bytes: bytes | None) -> dict[str, Any]:
        if image_bytes is None:
            return {"role": "user", "content": prompt}
        b64 = base64.b64encode(image_bytes).decode("utf-8")
        media_type = _detect_media_type(image_bytes)
        return {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{media_type};base64,{b64}"},
                },
            ],
        }
