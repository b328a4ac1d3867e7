"""Domain events for the catalog."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class ProductLowStock(DomainEvent):
    """Raised when on-hand stock drops to or below the low-stock threshold."""

    sku: str = ""
    name: str = ""
    stock_quantity: int = 0
    threshold: int = 0
