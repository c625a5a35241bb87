"""Retrieval module initialization."""

from gadget_scout.retrieval.index import EmbeddingIndex
from gadget_scout.retrieval.ranker import RetrievalResult, cosine_similarity, keyword_rank, rank
from gadget_scout.retrieval.retriever import (
    EmbeddingRetriever,
    KeywordRetriever,
    Retriever,
    build_retriever
)

__all__ = [
    "EmbeddingIndex",
    "RetrievalResult",
    "cosine_similarity",
    "keyword_rank",
    "rank",
    "Retriever",
    "EmbeddingRetriever",
    "KeywordRetriever",
    "build_retriever"
]
