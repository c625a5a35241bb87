"""
Catalog Models.
Read-only product records supplied by the catalog document.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """Product catalog entity. Immutable for the lifetime of a session."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str
    category: str = ""
    description: str = ""
    price: float = Field(..., ge=0)
    image_url: str = Field(default="", alias="imageUrl")
    affiliate_url: str = Field(default="", alias="affiliateUrl")
    features: List[str] = Field(default_factory=list)

    def document(self) -> str:
        """Descriptive text used for embedding."""
        return (
            f"Product: {self.name}. "
            f"Description: {self.description}. "
            f"Features: {', '.join(self.features)}."
        )

    def to_display(self) -> dict:
        """Fields the presentation layer renders on a recommendation card."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "price": self.price,
            "imageUrl": self.image_url,
            "affiliateUrl": self.affiliate_url,
            "features": list(self.features),
        }

    def __repr__(self):
        return f"<Product {self.id}: {self.name}>"
