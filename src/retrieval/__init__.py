"""Retrieval — knowledge-base search delegated to the managed vector index."""

from src.retrieval.vector_search import SearchResult, VectorSearchClient

__all__ = [
    "SearchResult",
    "VectorSearchClient",
]
