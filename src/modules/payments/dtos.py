"""Payment DTOs (pydantic v2, immutable)."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentIntentDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(gt=0, decimal_places=2)
    currency: Optional[str] = None


class RefundDTO(BaseModel):
    """``amount`` omitted refunds the full payment."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    order_id: str
    amount: Optional[Decimal] = Field(default=None, gt=0)
    reason: str = ""


class PayPalOrderDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(gt=0, decimal_places=2)
