"""Product DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2, immutable
(``frozen=True``). Views build them from ``request.data`` or query params.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.products.constants import (
    DEFAULT_ORDERING,
    RATING_MAX,
    RATING_MIN,
    REVIEW_COMMENT_MAX_LENGTH,
    REVIEW_TITLE_MAX_LENGTH,
    SORT_FIELDS,
    ProductStatus,
    StockOperation,
)

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class CreateProductDTO(BaseModel):
    """Immutable DTO for product creation requests."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    sku: str
    name: str
    price: Decimal
    description: str = ""
    stock_quantity: int = 0
    collection: str = ""
    image_url: str = ""
    weight: Optional[Decimal] = None
    dimensions: str = ""

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Name is required.")
        return v

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Price must be greater than zero.")
        return v

    @field_validator("stock_quantity")
    @classmethod
    def stock_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Stock quantity cannot be negative.")
        return v

    @field_validator("sku")
    @classmethod
    def sku_must_not_be_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("SKU must not be empty.")
        return v.upper()


class UpdateProductDTO(BaseModel):
    """All fields are optional; only supplied fields are updated."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: Optional[str] = None
    price: Optional[Decimal] = None
    description: Optional[str] = None
    collection: Optional[str] = None
    image_url: Optional[str] = None
    weight: Optional[Decimal] = None
    dimensions: Optional[str] = None
    status: Optional[ProductStatus] = None

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v <= 0:
            raise ValueError("Price must be greater than zero.")
        return v


class StockUpdateDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    operation: StockOperation = StockOperation.SET
    quantity: Optional[int] = None

    @field_validator("quantity")
    @classmethod
    def quantity_not_negative_for_delta(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("Quantity cannot be negative.")
        return v


class ProductQueryDTO(BaseModel):
    """Catalog listing parameters.

    ``sort_by`` outside the whitelist silently falls back to newest first.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    search: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    collection: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: str = "asc"
    limit: Optional[int] = Field(default=None, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    include_inactive: bool = False

    @property
    def is_default(self) -> bool:
        """True for the bare storefront listing, the only cached shape."""
        return not any(
            (
                self.search,
                self.min_price is not None,
                self.max_price is not None,
                self.collection,
                self.sort_by,
                self.limit,
                self.offset,
                self.include_inactive,
            )
        )

    @property
    def ordering(self) -> Tuple[str, ...]:
        field = SORT_FIELDS.get(self.sort_by or "")
        if not field:
            return DEFAULT_ORDERING
        prefix = "-" if self.sort_order.lower() == "desc" else ""
        return (f"{prefix}{field}", "id")


# ---------------------------------------------------------------------------
# Stock availability / reservations
# ---------------------------------------------------------------------------


class StockItemDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int = Field(default=1, ge=1)


class StockRequestDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: List[StockItemDTO]
    session_id: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_not_empty(cls, v: List[StockItemDTO]) -> List[StockItemDTO]:
        if not v:
            raise ValueError("At least one item is required.")
        product_ids = [item.product_id for item in v]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Duplicate product IDs are not allowed in the same request.")
        return v


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


class CreateReviewDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    rating: int = Field(ge=RATING_MIN, le=RATING_MAX)
    title: str = Field(min_length=1, max_length=REVIEW_TITLE_MAX_LENGTH)
    comment: str = Field(min_length=1, max_length=REVIEW_COMMENT_MAX_LENGTH)
