"""Turns ranked search hits into the context blob sent to the model."""

from __future__ import annotations

from typing import Sequence

from tusk.models.retrieval import SearchHit


def assemble_context(hits: Sequence[SearchHit]) -> str:
    """Concatenate hit contents in the order given.

    Each hit is wrapped as ``"\\n<content>\\n\\n"``.  No re-ranking is done:
    the caller's order (score-descending from the store) is kept.  No hits
    gives an empty string.
    """
    return "".join(f"\n{hit.content}\n\n" for hit in hits)
