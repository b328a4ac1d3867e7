"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when an order is created."""

    order_number: str = ""
    customer_id: str = ""
    total_amount: str = "0.00"


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an order status changes."""

    old_status: str = ""
    new_status: str = ""


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    reason: str = ""
    stock_restored: bool = False


@dataclass(frozen=True)
class ReturnRequested(DomainEvent):
    reason: str = ""


@dataclass(frozen=True)
class OrderRefunded(DomainEvent):
    payment_method: str = ""
