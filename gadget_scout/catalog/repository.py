"""
Catalog Repository.
Loads the product catalog snapshot and serves lookups against it.
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import httpx
from pydantic import ValidationError

from gadget_scout.catalog.models import Product
from gadget_scout.core.exceptions import CatalogLoadException

logger = logging.getLogger(__name__)


class CatalogRepository:
    """
    Immutable, ordered snapshot of the product catalog.

    Insertion order is preserved; it is the tie-breaker for retrieval ranking.
    """

    def __init__(self, products: List[Product], featured_id: Optional[str] = None):
        self._products = tuple(products)
        self._by_id: Dict[str, Product] = {}
        for product in self._products:
            if product.id in self._by_id:
                raise CatalogLoadException("<memory>", f"duplicate product id '{product.id}'")
            self._by_id[product.id] = product
        self._featured_id = featured_id
        self._version = self._compute_version()

    @property
    def products(self) -> List[Product]:
        return list(self._products)

    @property
    def version(self) -> str:
        """Content hash; changes whenever any product record changes."""
        return self._version

    def get_by_id(self, product_id: str) -> Optional[Product]:
        """Get a product by ID."""
        return self._by_id.get(product_id)

    def featured(self) -> Optional[Product]:
        """The Deal of the Day: the configured product, else the first one."""
        if self._featured_id and self._featured_id in self._by_id:
            return self._by_id[self._featured_id]
        return self._products[0] if self._products else None

    def _compute_version(self) -> str:
        digest = hashlib.sha256()
        for product in self._products:
            digest.update(product.model_dump_json().encode("utf-8"))
        return digest.hexdigest()[:16]

    def __len__(self) -> int:
        return len(self._products)

    def __iter__(self) -> Iterator[Product]:
        return iter(self._products)

    def __bool__(self) -> bool:
        return bool(self._products)


def parse_catalog(data: Any, source: str = "<memory>", featured_id: Optional[str] = None) -> CatalogRepository:
    """Build a repository from a decoded catalog document."""
    if isinstance(data, dict):
        records = data.get("products", [])
    elif isinstance(data, list):
        records = data
    else:
        raise CatalogLoadException(source, "document must be a list or contain a 'products' list")

    if not isinstance(records, list):
        raise CatalogLoadException(source, "'products' must be a list")

    products = []
    for index, record in enumerate(records):
        try:
            products.append(Product.model_validate(record))
        except ValidationError as e:
            raise CatalogLoadException(source, f"record {index} is invalid: {e.errors()}")

    return CatalogRepository(products, featured_id=featured_id)


async def load_catalog(
    source: str,
    featured_id: Optional[str] = None,
    timeout: float = 10.0
) -> CatalogRepository:
    """
    Load the catalog document from a local path or an http(s) URL.

    Args:
        source: File path or URL of a JSON document
        featured_id: Optional Deal of the Day product id
        timeout: Network timeout for remote documents

    Returns:
        CatalogRepository snapshot
    """
    try:
        if source.startswith(("http://", "https://")):
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.get(source)
                response.raise_for_status()
                data = response.json()
        else:
            data = json.loads(Path(source).read_text(encoding="utf-8"))
    except (OSError, ValueError, httpx.HTTPError) as e:
        raise CatalogLoadException(source, str(e))

    catalog = parse_catalog(data, source=source, featured_id=featured_id)
    logger.info(f"Loaded {len(catalog)} products from {source} (version {catalog.version})")
    return catalog
