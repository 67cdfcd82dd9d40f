"""Hybrid subsidy search combining vector and BM25 scores."""

from src.components.subsidy_search.embedding_client import EmbeddingClient
from src.components.subsidy_search.models import SearchQuery, SearchResult
from src.components.subsidy_search.search import SubsidySearch, tokenize

__all__ = [
    "EmbeddingClient",
    "SearchQuery",
    "SearchResult",
    "SubsidySearch",
    "tokenize",
]
