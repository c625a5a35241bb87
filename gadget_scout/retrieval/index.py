"""
Embedding Index.
Caches catalog document vectors and embeds queries against them.
"""

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from gadget_scout.catalog.models import Product
from gadget_scout.catalog.repository import CatalogRepository
from gadget_scout.services.embeddings import EmbeddingService

logger = logging.getLogger(__name__)


class EmbeddingIndex:
    """
    Vector view of a catalog snapshot.

    Document vectors are computed once per catalog version and shared
    read-only by every turn. The first query is embedded in the same batch as
    the documents; later queries are embedded alone.
    """

    def __init__(self, catalog: CatalogRepository, embeddings: EmbeddingService):
        self.catalog = catalog
        self._embeddings = embeddings
        self._matrix: Optional[np.ndarray] = None
        self._version: Optional[str] = None
        self._build_lock = asyncio.Lock()

    @property
    def is_built(self) -> bool:
        return self._matrix is not None and self._version == self.catalog.version

    def documents(self) -> List[str]:
        return [product.document() for product in self.catalog]

    async def embed(self, texts: Sequence[str]) -> np.ndarray:
        """One vector per input, order-preserving, single batched call."""
        return await self._embeddings.embed(texts)

    async def query(self, text: str) -> Tuple[np.ndarray, List[Tuple[Product, np.ndarray]]]:
        """
        Embed a query and return it with the (product, vector) corpus.

        Raises whatever the embedding service raises; callers decide how to degrade.
        """
        if not self.is_built:
            async with self._build_lock:
                if not self.is_built:
                    vectors = await self.embed([text] + self.documents())
                    self._matrix = vectors[1:]
                    self._version = self.catalog.version
                    logger.info(
                        f"Built embedding index: {len(self.catalog)} documents, "
                        f"dim={self._matrix.shape[1] if self._matrix.size else 0}"
                    )
                    return vectors[0], self._corpus()

        query_vector = (await self.embed([text]))[0]
        return query_vector, self._corpus()

    def _corpus(self) -> List[Tuple[Product, np.ndarray]]:
        return list(zip(self.catalog, self._matrix))

    def invalidate(self):
        """Drop cached vectors (catalog replaced)."""
        self._matrix = None
        self._version = None
