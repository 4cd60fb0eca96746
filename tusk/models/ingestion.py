"""Ingestion outcome model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class IngestionResult(BaseModel):
    """Summary of one document ingestion run."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    filename: str
    chunks_total: int = Field(ge=0, description="Windows produced by the chunker.")
    chunks_written: int = Field(ge=0, description="Chunk records committed to the chunk store.")
    failed_batches: int = Field(default=0, ge=0, description="Sub-batches that exhausted retries.")
    errors: list[str] = Field(default_factory=list)
    extraction_failed: bool = Field(
        default=False,
        description="True when the placeholder text was stored instead of extracted text.",
    )
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Wall time in seconds.")
