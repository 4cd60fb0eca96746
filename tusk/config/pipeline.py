"""Typed pipeline tuning, built from the ``pipeline`` section of config.yaml.

Every field has a default, so an absent or partial YAML section still yields
a complete configuration.  Cross-field rules (window larger than overlap,
candidate pool larger than result limit) are checked at load time so a bad
config fails at startup instead of mid-ingestion.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

_DEFAULT_SYSTEM_PROMPT = (
    "You are an AI assistant that answers the user's queries with the provided "
    "context. Do NOT mention the documents or the context anywhere in your "
    "response - make it sound as natural as possible."
)


class ChunkingConfig(BaseModel):
    """Window sizing for the word-boundary chunker."""

    model_config = ConfigDict(frozen=True)

    window_size: int = Field(default=2048, gt=0, description="Maximum characters per chunk.")
    overlap: int = Field(default=50, gt=0, description="Trailing characters carried into the next chunk.")

    @model_validator(mode="after")
    def _window_exceeds_overlap(self) -> ChunkingConfig:
        if self.window_size <= self.overlap:
            raise ValueError(
                f"window_size ({self.window_size}) must be greater than overlap ({self.overlap})"
            )
        return self


class IngestionConfig(BaseModel):
    """Scheduler and bulk-writer tuning."""

    model_config = ConfigDict(frozen=True)

    embed_batch_size: int = Field(default=16, gt=0, description="Chunks per embedding call.")
    max_concurrent_batches: int = Field(
        default=4, gt=0, description="Sub-batches allowed in flight at once."
    )
    max_attempts: int = Field(default=3, gt=0, description="Embedding attempts per sub-batch.")
    backoff_step_seconds: float = Field(
        default=0.1, ge=0.0, description="Delay multiplier: attempt n sleeps n * step."
    )
    bulk_write_threshold: int = Field(
        default=500, gt=0, description="Chunk records buffered before a bulk write."
    )
    fail_on_partial: bool = Field(
        default=True,
        description="Raise IngestionError when any sub-batch could not be embedded.",
    )


class SearchConfig(BaseModel):
    """Vector search pool sizing."""

    model_config = ConfigDict(frozen=True)

    num_candidates: int = Field(default=500, gt=0, description="ANN candidate pool size.")
    limit: int = Field(default=5, gt=0, description="Hits returned to the assembler.")

    @model_validator(mode="after")
    def _candidates_exceed_limit(self) -> SearchConfig:
        if self.num_candidates <= self.limit:
            raise ValueError(
                f"num_candidates ({self.num_candidates}) must be greater than limit ({self.limit})"
            )
        return self


class GenerationConfig(BaseModel):
    """Streaming generation settings."""

    model_config = ConfigDict(frozen=True)

    timeout_seconds: float = Field(default=30.0, gt=0.0, description="Aggregation deadline.")
    system_prompt: str = Field(default=_DEFAULT_SYSTEM_PROMPT)


class PipelineConfig(BaseModel):
    """All pipeline tuning sections."""

    model_config = ConfigDict(frozen=True)

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> PipelineConfig:
        """Build from a merged config dict as returned by ``load_config``."""
        return cls.model_validate(config.get("pipeline") or {})
