"""
Embedding Service using the Gemini embedding API.
Turns batches of text into vectors in a single round trip.
"""

import logging
import time
from typing import List, Optional, Sequence

import numpy as np

from gadget_scout.config import get_settings
from gadget_scout.core.exceptions import EmbeddingAPIException, MissingCredentialException

logger = logging.getLogger(__name__)
settings = get_settings()


class EmbeddingService:
    """
    Embedding service backed by google-genai.

    One call to `embed` is one batched request; the returned matrix has one
    row per input text, in input order.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self._api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self._model = model or settings.EMBEDDING_MODEL_ID
        self._client = None
        self._is_initialized = False

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def initialize(self):
        """Initialize the google-genai client if a key is configured."""
        if not self._api_key:
            logger.warning("GEMINI_API_KEY not set; embedding service disabled")
            return

        from google import genai

        self._client = genai.Client(api_key=self._api_key)
        self._is_initialized = True
        logger.info(f"Embedding service initialized with model: {self._model}")

    async def embed(self, texts: Sequence[str]) -> np.ndarray:
        """
        Embed a batch of texts.

        Args:
            texts: Strings to embed

        Returns:
            float32 matrix of shape (len(texts), dim)
        """
        if not self._api_key:
            raise MissingCredentialException("GEMINI_API_KEY", "embeddings")
        if not self._is_initialized:
            await self.initialize()
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)

        start_time = time.time()

        try:
            result = await self._client.aio.models.embed_content(
                model=self._model,
                contents=list(texts)
            )
        except Exception as e:
            raise EmbeddingAPIException(str(e))

        embeddings = result.embeddings or []
        if len(embeddings) != len(texts):
            raise EmbeddingAPIException(
                f"expected {len(texts)} embeddings, got {len(embeddings)}"
            )

        vectors = np.asarray([e.values for e in embeddings], dtype=np.float32)
        logger.debug(f"Embedded {len(texts)} texts in {(time.time() - start_time) * 1000:.0f}ms")
        return vectors

    async def cleanup(self):
        """Cleanup resources."""
        self._client = None
        self._is_initialized = False
        logger.info("Embedding service cleaned up")


__all__ = ["EmbeddingService"]
