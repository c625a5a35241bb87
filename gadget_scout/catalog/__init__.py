"""Catalog module initialization."""

from gadget_scout.catalog.models import Product
from gadget_scout.catalog.repository import CatalogRepository, load_catalog, parse_catalog

__all__ = [
    "Product",
    "CatalogRepository",
    "load_catalog",
    "parse_catalog"
]
