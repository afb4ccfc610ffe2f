# catalog_service/schemas.py

"""
Pydantic schemas for the Catalog Service API.
These define the data structures for incoming requests and outgoing responses,
ensuring data validation and clear API contracts.
"""

import math
from datetime import datetime
from typing import Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator


Category = Literal["Travel Comfort", "Home Essentials", "Tech Accessories", "Budget Finds"]

# Labels offered by the admin page; anything else is rejected.
CATEGORIES = get_args(Category)

# Upper bound of a 32-bit signed INTEGER column.
MAX_PRICE = 2**31 - 1


# Schema for the text fields of a new product.
# Built from the multipart form of POST /api/products.
class ProductCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255, description="Name of the product.")
    description: str = Field(..., min_length=1, max_length=5000, description="Detailed description of the product.")
    price: int = Field(..., ge=0, le=MAX_PRICE, description="Price in whole currency units. Fractions are truncated.")
    category: Category = Field(..., description="One of the storefront category labels.")

    @field_validator("price", mode="before")
    @classmethod
    def truncate_price(cls, value):
        """Accept numeric strings and floats, truncating toward zero."""
        if value is None or isinstance(value, bool):
            raise ValueError("Price must be a number.")
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("Price must be a number.")
            try:
                return int(value)
            except ValueError:
                pass
            try:
                value = float(value)
            except ValueError:
                raise ValueError("Price must be a number.")
        if isinstance(value, float):
            if not math.isfinite(value):
                raise ValueError("Price must be a finite number.")
            return int(value)
        return value


# Schema for representing a product in API responses.
# Inherits the validated fields and adds the ones assigned at creation.
class ProductResponse(ProductCreate):
    id: str = Field(..., description="Unique identifier of the product.")
    images: List[str] = Field(default_factory=list, description="Generated image filenames, in upload order.")
    created_at: datetime = Field(..., serialization_alias="createdAt", description="Creation timestamp (UTC).")
    image_urls: List[str] = Field(
        default_factory=list, serialization_alias="imageUrls", description="Servable URLs of the images."
    )

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
    fields: Optional[Dict[str, str]] = None
