"""
Catalog Endpoints.
Read-only view of the product snapshot the assistant recommends from.
"""

from typing import Optional

from fastapi import APIRouter, Request

from gadget_scout.core.exceptions import ProductNotFoundException

router = APIRouter()


@router.get("")
async def list_products(request: Request, category: Optional[str] = None):
    """List products, optionally filtered by category (case-insensitive)."""
    catalog = request.app.state.catalog
    featured = catalog.featured()

    products = [
        p for p in catalog
        if category is None or p.category.lower() == category.lower()
    ]

    return {
        "version": catalog.version,
        "count": len(products),
        "featured_id": featured.id if featured else None,
        "products": [p.to_display() for p in products]
    }


@router.get("/{product_id}")
async def get_product(request: Request, product_id: str):
    """Get one product by ID."""
    product = request.app.state.catalog.get_by_id(product_id)
    if product is None:
        raise ProductNotFoundException(product_id)
    return product.to_display()
