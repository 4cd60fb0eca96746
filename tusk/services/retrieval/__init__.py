"""Retrieval helpers: vector query construction and context assembly.

QueryService lives in ``tusk.services.retrieval.query_service`` and is
imported from there directly.
"""

from tusk.services.retrieval.assembler import assemble_context
from tusk.services.retrieval.vector_query import build_vector_query, rank_results

__all__ = ["assemble_context", "build_vector_query", "rank_results"]
