"""Django ORM implementation of the Order repository.

All write operations are wrapped in ``transaction.atomic()`` so the Order
aggregate (Order + OrderItems) is persisted atomically.  Concurrency control
on status updates uses ``select_for_update()``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models.functions import Coalesce

from modules.core.outbox import record_domain_events
from modules.orders.filters import OrderFilter
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

_MONEY = models.DecimalField(max_digits=12, decimal_places=2)


def _sum_or_zero(field: str) -> Coalesce:
    return Coalesce(models.Sum(field), models.Value(Decimal("0.00")), output_field=_MONEY)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        fields = {key: value for key, value in data.items() if key != "items"}
        discount = fields.get("discount_amount") or Decimal("0.00")
        order = Order(**fields)
        order.save()

        subtotal = self._insert_items(order, data.get("items", []))
        order.total_amount = max(Decimal("0.00"), subtotal - discount)
        order.save(update_fields=["total_amount", "updated_at"])

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            item_count=len(data.get("items", [])),
        )
        return order

    def _insert_items(self, order: Order, items: List[Dict[str, Any]]) -> Decimal:
        total = Decimal("0.00")
        for item_data in items:
            item = OrderItem(
                order=order,
                product_id=item_data["product_id"],
                quantity=item_data["quantity"],
                unit_price=item_data["unit_price"],
            )
            item.save()
            total += item.subtotal
        return total

    @transaction.atomic
    def replace_items(self, order: Order, items: List[Dict[str, Any]]) -> None:
        order.items.all().delete()
        subtotal = self._insert_items(order, items)
        order.total_amount = max(Decimal("0.00"), subtotal - order.discount_amount)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded relations (prevents N+1).

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return (
                Order.objects.alive()
                .select_related("customer", "customer__user")
                .prefetch_related("items__product", "status_history")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        try:
            return Order.objects.select_for_update().alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> "models.QuerySet[Order]":
        queryset = (
            Order.objects.alive()
            .select_related("customer")
            .prefetch_related("items__product")
        )
        if filters:
            queryset = OrderFilter(data=filters, queryset=queryset).qs
        return queryset

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        return Order.objects.filter(idempotency_key=key).first()

    def get_by_payment_reference(self, reference: str) -> Optional[Order]:
        if not reference:
            return None
        return Order.objects.select_related("customer").filter(payment_intent_id=reference).first()

    def list_history(self, order_id: UUID) -> List[OrderStatusHistory]:
        return list(OrderStatusHistory.objects.filter(order_id=order_id).order_by("-created_at"))

    def status_stats(self, revenue_statuses: set[str], since) -> Dict[str, Any]:
        queryset = Order.objects.alive()
        by_status = (
            queryset.order_by()
            .values("status")
            .annotate(
                count=models.Count("id"),
                total_value=_sum_or_zero("total_amount"),
            )
            .order_by("status")
        )
        revenue = queryset.filter(status__in=revenue_statuses).aggregate(
            total=_sum_or_zero("total_amount")
        )["total"]
        return {
            "status_stats": list(by_status),
            "recent_orders": queryset.filter(created_at__gte=since).count(),
            "total_revenue": revenue,
        }

    # ------------------------------------------------------------------
    # Save / Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        entity.save()
        event_count = record_domain_events(entity, topic="orders")
        logger.info("order.saved", order_id=str(entity.id), event_count=event_count)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        order = self.get_by_id(id)
        if not order:
            return False
        order.delete()
        logger.info("order.soft_deleted", order_id=str(id))
        return True

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @transaction.atomic
    def add_history(
        self,
        order_id: UUID,
        status: str,
        reason: str = "",
        old_status: Optional[str] = None,
        user: Any = None,
        process_type: Optional[str] = None,
    ) -> OrderStatusHistory:
        label = "system"
        if user is not None and getattr(user, "is_authenticated", False):
            label = user.email or user.get_username()
        else:
            user = None

        history = OrderStatusHistory(
            order_id=order_id,
            old_status=old_status,
            new_status=status,
            reason=reason,
            updated_by=user,
            updated_by_label=label,
            process_type=process_type or Order.process_type_for(status),
        )
        history.save()

        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=status,
            process_type=history.process_type,
        )
        return history
