"""Query-side models: search hits, generation outcomes and answers."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SearchHit(BaseModel):
    """A chunk returned by vector search, with its similarity score."""

    model_config = ConfigDict(frozen=True)

    content: str
    filename: str
    score: float = Field(ge=0.0, le=1.0, description="Cosine similarity, 1.0 = identical.")
    document_id: str = ""
    chunk_id: str = ""


class GenerationState(str, Enum):
    """Lifecycle of one streamed generation."""

    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


class GenerationResult(BaseModel):
    """Terminal outcome of a streamed generation.

    ``received_output`` distinguishes a real answer from the sentinel text
    used when the stream produced nothing.
    """

    model_config = ConfigDict(frozen=True)

    state: GenerationState
    text: str = ""
    error: str | None = None
    received_output: bool = False


class Answer(BaseModel):
    """A retrieval-augmented answer to one query."""

    model_config = ConfigDict(frozen=True)

    query: str
    results: str = Field(description="User-facing text for this outcome.")
    hits: list[SearchHit] = Field(default_factory=list)
    generation: GenerationResult


class ChatMessage(BaseModel):
    """One turn of conversation history."""

    model_config = ConfigDict(frozen=True)

    sender: str = Field(description='"user" or "model".')
    content: str
