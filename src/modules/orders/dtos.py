"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer and the Service layer.
DTOs are immutable (``frozen=True``).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.orders.constants import (
    ADMIN_LIST_DEFAULT_LIMIT,
    ADMIN_LIST_MAX_LIMIT,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """A single order line; ``unit_price`` is resolved from the catalog."""

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class ShippingInfoDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="ignore")

    name: str
    address: str
    city: str
    zip: str
    state: str = ""
    country: str = "US"
    phone: str = ""
    email: str = ""

    @field_validator("name", "address", "city", "zip")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("This field may not be blank.")
        return v


def _validate_items(items: List[CreateOrderItemDTO]) -> List[CreateOrderItemDTO]:
    if not items:
        raise ValueError("Order must have at least one item.")
    product_ids = [item.product_id for item in items]
    if len(product_ids) != len(set(product_ids)):
        raise ValueError("Duplicate product IDs are not allowed in the same order.")
    return items


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation.

    Either ``shipping_info`` or ``address_id`` (a saved address of the
    customer) must be supplied.  Payment flows create orders that are already
    paid: they pass ``initial_status=confirmed`` and ``enforce_stock=False``
    so a captured payment is never refused for a stock race.  They also pass
    the ``paid_amount`` the provider collected, which must equal the total.
    """

    model_config = ConfigDict(frozen=True)

    items: List[CreateOrderItemDTO]
    shipping_info: Optional[ShippingInfoDTO] = None
    address_id: Optional[UUID] = None
    notes: str = ""
    discount_code: Optional[str] = None
    session_id: Optional[str] = None
    idempotency_key: Optional[str] = None

    payment_method: PaymentMethod = PaymentMethod.MANUAL
    payment_intent_id: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    initial_status: OrderStatus = OrderStatus.PENDING
    enforce_stock: bool = True
    paid_amount: Optional[Decimal] = None

    @field_validator("items")
    @classmethod
    def items_must_be_valid(cls, v: List[CreateOrderItemDTO]) -> List[CreateOrderItemDTO]:
        return _validate_items(v)

    @model_validator(mode="after")
    def shipping_destination_required(self):
        if self.shipping_info is None and self.address_id is None:
            raise ValueError("Shipping info or a saved address is required.")
        return self


class UpdateStatusDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    status: OrderStatus
    reason: str = ""
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[date] = None


class ReasonDTO(BaseModel):
    """Body of cancel and return-request calls."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    reason: str = ""


class ModifyOrderDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    items: List[CreateOrderItemDTO]
    shipping_info: Optional[ShippingInfoDTO] = None
    reason: str = ""

    @field_validator("items")
    @classmethod
    def items_must_be_valid(cls, v: List[CreateOrderItemDTO]) -> List[CreateOrderItemDTO]:
        return _validate_items(v)


class OrderQueryDTO(BaseModel):
    """Listing parameters shared by the customer and admin order lists.

    ``status=all`` means no status filter.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    status: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = None
    customer_email: Optional[str] = None
    sort_by: str = "created_at"
    sort_order: str = "desc"
    limit: int = Field(default=ADMIN_LIST_DEFAULT_LIMIT, ge=1)
    offset: int = Field(default=0, ge=0)

    @field_validator("status")
    @classmethod
    def all_means_unfiltered(cls, v: Optional[str]) -> Optional[str]:
        if v in (None, "", "all"):
            return None
        if v not in OrderStatus.values:
            raise ValueError(f"Unknown status '{v}'.")
        return v

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, v: int) -> int:
        return min(v, ADMIN_LIST_MAX_LIMIT)
