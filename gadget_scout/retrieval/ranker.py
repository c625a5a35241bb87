"""
Retrieval Ranking.
Scores catalog items against a query and selects the top K.
"""

import re
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from gadget_scout.catalog.models import Product

DEFAULT_TOP_K = 3

# Keyword weights per product field
NAME_WEIGHT = 5
CATEGORY_WEIGHT = 3
FEATURES_WEIGHT = 2
DESCRIPTION_WEIGHT = 1


@dataclass(frozen=True)
class RetrievalResult:
    """A ranked catalog hit. Produced fresh per query, never persisted."""
    product: Product
    score: float
    rank: int

    def to_dict(self):
        return {
            "product_id": self.product.id,
            "name": self.product.name,
            "score": self.score,
            "rank": self.rank
        }


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between two vectors.

    Returns 0.0 when either vector has zero magnitude.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector dimensions differ: {va.shape} vs {vb.shape}")

    mag_a = float(np.sqrt(np.dot(va, va)))
    mag_b = float(np.sqrt(np.dot(vb, vb)))
    if mag_a == 0.0 or mag_b == 0.0:
        return 0.0

    return float(np.dot(va, vb)) / (mag_a * mag_b)


def select_top(
    scored: Sequence[Tuple[Product, float]],
    top_k: int = DEFAULT_TOP_K
) -> List[RetrievalResult]:
    """Sort by descending score, keeping input order on ties, and cut to top_k."""
    order = sorted(range(len(scored)), key=lambda i: -scored[i][1])
    return [
        RetrievalResult(product=scored[i][0], score=scored[i][1], rank=position + 1)
        for position, i in enumerate(order[:max(top_k, 0)])
    ]


def rank(
    query: Sequence[float],
    corpus: Sequence[Tuple[Product, Sequence[float]]],
    top_k: int = DEFAULT_TOP_K
) -> List[RetrievalResult]:
    """
    Rank corpus entries by cosine similarity to the query vector.

    Args:
        query: Query embedding
        corpus: (product, embedding) pairs in catalog order
        top_k: Maximum number of results

    Returns:
        At most top_k results sorted by non-increasing score
    """
    scored = [(product, cosine_similarity(query, vector)) for product, vector in corpus]
    return select_top(scored, top_k)


def query_terms(query: str, min_length: int = 3) -> List[str]:
    """Lower-cased whitespace-separated words of at least min_length characters."""
    return [w for w in re.split(r"\s+", query.lower()) if len(w) >= min_length]


def keyword_score(terms: Sequence[str], product: Product) -> float:
    """Weighted substring overlap between query terms and a product's fields."""
    name = product.name.lower()
    category = product.category.lower()
    features = " ".join(product.features).lower()
    description = product.description.lower()

    score = 0
    for term in terms:
        if term in name:
            score += NAME_WEIGHT
        if term in category:
            score += CATEGORY_WEIGHT
        if term in features:
            score += FEATURES_WEIGHT
        if term in description:
            score += DESCRIPTION_WEIGHT
    return float(score)


def keyword_rank(
    query: str,
    corpus: Sequence[Product],
    top_k: int = DEFAULT_TOP_K,
    min_length: int = 3
) -> List[RetrievalResult]:
    """Lexical fallback ranking; products with no overlap are left out."""
    terms = query_terms(query, min_length)
    if not terms:
        return []

    scored = [(product, keyword_score(terms, product)) for product in corpus]
    return select_top([(p, s) for p, s in scored if s > 0], top_k)
