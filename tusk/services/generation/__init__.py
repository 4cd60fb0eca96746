"""Streamed answer aggregation (deadline, cancellation, terminal outcome)."""

from tusk.services.generation.aggregator import (
    CANCELLED_MESSAGE,
    NO_RESULTS_TEXT,
    TIMEOUT_TEXT,
    StreamingAggregator,
)

__all__ = ["CANCELLED_MESSAGE", "NO_RESULTS_TEXT", "TIMEOUT_TEXT", "StreamingAggregator"]
