"""Order repository interface.

Extends ``IRepository[Order]`` with methods required by the Order
aggregate: atomic creation with items, status history tracking,
idempotency-key and payment-reference look-ups.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem children and
    OrderStatusHistory records.  Mutations must be atomic.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        ``data`` must include ``customer_id`` and ``items`` (list of dicts
        with ``product_id``, ``quantity``, ``unit_price``); any other key is
        set on the order as a field.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched items and status history."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> "models.QuerySet[Order]":
        """List orders matching ``OrderFilter`` parameters."""

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        status: str,
        reason: str = "",
        old_status: Optional[str] = None,
        user: Any = None,
        process_type: Optional[str] = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def list_history(self, order_id: UUID) -> List[OrderStatusHistory]:
        """Status history, newest first."""

    @abstractmethod
    def replace_items(self, order: Order, items: List[Dict[str, Any]]) -> None:
        """Swap the order lines and recompute ``total_amount``."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Retrieve an order by its idempotency key."""

    @abstractmethod
    def get_by_payment_reference(self, reference: str) -> Optional[Order]:
        """Retrieve an order by Stripe PaymentIntent or PayPal order id."""

    @abstractmethod
    def status_stats(self, revenue_statuses: set[str], since) -> Dict[str, Any]:
        """Per-status counts and totals, recent count and revenue."""
