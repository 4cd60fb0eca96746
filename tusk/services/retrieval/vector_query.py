"""Vector search request construction and result ranking.

:func:`build_vector_query` produces the keyword arguments for a ChromaDB
``collection.query`` call: one query embedding, an owner ``where`` filter,
and ``n_results`` set to the candidate pool size.  :func:`rank_results`
turns the raw response into :class:`SearchHit` objects, best first, cut to
the requested limit.

Both are pure so they can be tested without a database.
"""

from __future__ import annotations

from typing import Any

from tusk.models.retrieval import SearchHit

OWNER_FIELD = "owner_id"
DOCUMENT_FIELD = "document_id"
FILENAME_FIELD = "filename"

_INCLUDE = ["documents", "metadatas", "distances"]


def validate_pool(num_candidates: int, limit: int) -> None:
    """Raise ``ValueError`` unless ``num_candidates > limit > 0``."""
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    if num_candidates <= limit:
        raise ValueError(
            f"num_candidates ({num_candidates}) must be greater than limit ({limit})"
        )


def build_vector_query(
    query_vector: list[float],
    num_candidates: int,
    owner_id: str,
) -> dict[str, Any]:
    """Return ``collection.query`` kwargs for one owner-scoped ANN search."""
    if not query_vector:
        raise ValueError("query_vector must not be empty")
    return {
        "query_embeddings": [list(query_vector)],
        "n_results": num_candidates,
        "where": {OWNER_FIELD: owner_id},
        "include": list(_INCLUDE),
    }


def distance_to_score(distance: float) -> float:
    """Convert a cosine distance to a similarity clamped to ``[0, 1]``."""
    return max(0.0, min(1.0, 1.0 - distance))


def rank_results(results: dict[str, Any], limit: int) -> list[SearchHit]:
    """Turn a ChromaDB query response into at most *limit* hits, best first."""
    documents = (results.get("documents") or [[]])[0] or []
    if not documents:
        return []
    ids = (results.get("ids") or [[]])[0] or [""] * len(documents)
    metadatas = (results.get("metadatas") or [[]])[0] or [{}] * len(documents)
    distances = (results.get("distances") or [[]])[0] or [0.0] * len(documents)

    hits = [
        SearchHit(
            content=text,
            filename=str((meta or {}).get(FILENAME_FIELD, "")),
            score=distance_to_score(float(distance)),
            document_id=str((meta or {}).get(DOCUMENT_FIELD, "")),
            chunk_id=str(chunk_id),
        )
        for chunk_id, text, meta, distance in zip(
            ids, documents, metadatas, distances, strict=True
        )
    ]
    hits.sort(key=lambda hit: hit.score, reverse=True)
    return hits[:limit]
