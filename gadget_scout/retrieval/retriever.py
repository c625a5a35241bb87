"""
Retrievers.
Turn a user's raw text into the handful of products injected as model context.
"""

import logging
import time
from typing import List, Optional

from gadget_scout.catalog.repository import CatalogRepository
from gadget_scout.config import RETRIEVAL_MODES, Settings
from gadget_scout.core.exceptions import ConfigurationException, MissingCredentialException
from gadget_scout.retrieval.index import EmbeddingIndex
from gadget_scout.retrieval.ranker import DEFAULT_TOP_K, RetrievalResult, keyword_rank, rank
from gadget_scout.services.embeddings import EmbeddingService

logger = logging.getLogger(__name__)


class Retriever:
    """Common contract: text in, at most top_k ranked products out."""

    kind = "none"

    def __init__(self, catalog: CatalogRepository, top_k: int = DEFAULT_TOP_K):
        self.catalog = catalog
        self.top_k = top_k

    async def retrieve(self, query: str) -> List[RetrievalResult]:
        raise NotImplementedError


class EmbeddingRetriever(Retriever):
    """Cosine-similarity retrieval over the embedding index."""

    kind = "embedding"

    def __init__(self, index: EmbeddingIndex, top_k: int = DEFAULT_TOP_K):
        super().__init__(index.catalog, top_k)
        self.index = index

    async def retrieve(self, query: str) -> List[RetrievalResult]:
        """
        Rank the catalog against the query.

        Any embedding failure degrades to an empty result so the turn can
        continue without augmentation.
        """
        if not query.strip() or not self.catalog:
            return []

        start = time.time()
        try:
            query_vector, corpus = await self.index.query(query)
        except Exception as e:
            logger.warning(f"Retrieval failed, continuing without context: {e}")
            return []

        results = rank(query_vector, corpus, self.top_k)
        logger.debug(f"Embedding retrieval took {(time.time() - start) * 1000:.0f}ms")
        return results


class KeywordRetriever(Retriever):
    """Weighted keyword overlap, used when no embedding service is configured."""

    kind = "keyword"

    def __init__(self, catalog: CatalogRepository, top_k: int = DEFAULT_TOP_K, min_length: int = 3):
        super().__init__(catalog, top_k)
        self.min_length = min_length

    async def retrieve(self, query: str) -> List[RetrievalResult]:
        return keyword_rank(query, list(self.catalog), self.top_k, self.min_length)


def build_retriever(
    settings: Settings,
    catalog: CatalogRepository,
    embeddings: Optional[EmbeddingService] = None
) -> Retriever:
    """
    Choose the retriever for this process.

    Embedding retrieval is the default; keyword retrieval is used only when no
    embedding service is configured (or when explicitly requested).
    """
    mode = settings.RETRIEVAL_MODE.lower()
    if mode not in RETRIEVAL_MODES:
        raise ConfigurationException(f"Unknown RETRIEVAL_MODE '{settings.RETRIEVAL_MODE}'")

    configured = embeddings is not None and embeddings.is_configured

    if mode == "embedding" and not configured:
        raise MissingCredentialException("GEMINI_API_KEY", "embedding retrieval")

    if mode == "keyword" or not configured:
        logger.info("Using keyword retriever")
        return KeywordRetriever(catalog, settings.RETRIEVAL_TOP_K, settings.KEYWORD_MIN_LENGTH)

    logger.info("Using embedding retriever")
    return EmbeddingRetriever(EmbeddingIndex(catalog, embeddings), settings.RETRIEVAL_TOP_K)
