from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Set

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models.functions import Coalesce, TruncMonth

from modules.accounts.models import Customer
from modules.analytics.constants import MONTHS_SHOWN
from modules.analytics.repositories.interfaces import IAnalyticsRepository
from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderItem
from modules.products.models import Product, Review, StockReservation

_MONEY = models.DecimalField(max_digits=14, decimal_places=2)
_ZERO = Decimal("0.00")
_CENT = Decimal("0.01")


def _sum_or_zero(expression) -> Coalesce:
    return Coalesce(models.Sum(expression), models.Value(_ZERO), output_field=_MONEY)


def _month(value) -> Optional[str]:
    return f"{value:%Y-%m}" if value else None


class AnalyticsDjangoRepository(IAnalyticsRepository):
    def _sales(self) -> "models.QuerySet[Order]":
        return Order.objects.alive().exclude(status=OrderStatus.CANCELLED)

    @staticmethod
    def _window(queryset: models.QuerySet, start, end, field: str = "created_at"):
        if start is not None:
            queryset = queryset.filter(**{f"{field}__gte": start})
        if end is not None:
            queryset = queryset.filter(**{f"{field}__lt": end})
        return queryset

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def sales_totals(self, start: Optional[datetime], end: Optional[datetime]) -> Dict[str, Any]:
        totals = self._window(self._sales(), start, end).aggregate(
            revenue=_sum_or_zero("total_amount"),
            orders=models.Count("id"),
        )
        orders = totals["orders"]
        revenue = totals["revenue"]
        average = (revenue / orders).quantize(_CENT, rounding=ROUND_HALF_UP) if orders else _ZERO
        return {"revenue": revenue, "orders": orders, "average_order_value": average}

    def revenue_by_month(self, start: datetime) -> List[Dict[str, Any]]:
        rows = (
            self._sales()
            .filter(created_at__gte=start)
            .annotate(month=TruncMonth("created_at"))
            .values("month")
            .annotate(revenue=_sum_or_zero("total_amount"), orders=models.Count("id"))
            .order_by("-month")[:MONTHS_SHOWN]
        )
        return [
            {"month": _month(row["month"]), "revenue": row["revenue"], "orders": row["orders"]}
            for row in rows
        ]

    def orders_by_status(self, start: datetime) -> List[Dict[str, Any]]:
        rows = (
            Order.objects.alive()
            .filter(created_at__gte=start)
            .values("status")
            .annotate(count=models.Count("id"))
            .order_by("-count")
        )
        return [{"status": row["status"], "count": row["count"]} for row in rows]

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    def _customers(self) -> "models.QuerySet[Customer]":
        return Customer.objects.alive().filter(user__is_staff=False)

    def customer_count(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> int:
        return self._window(self._customers(), start, end).count()

    def repeat_customer_count(self) -> int:
        return (
            self._sales()
            .values("customer_id")
            .annotate(orders=models.Count("id"))
            .filter(orders__gt=1)
            .count()
        )

    def average_lifetime_value(self) -> Decimal:
        per_customer = [
            row["total"]
            for row in self._sales()
            .values("customer_id")
            .annotate(total=_sum_or_zero("total_amount"))
        ]
        if not per_customer:
            return _ZERO
        return (sum(per_customer, _ZERO) / len(per_customer)).quantize(
            _CENT, rounding=ROUND_HALF_UP
        )

    def purchasing_customer_ids(self, start: datetime, end: datetime) -> Set[Any]:
        return set(
            self._window(self._sales(), start, end).values_list("customer_id", flat=True).distinct()
        )

    def customer_growth(self, start: datetime) -> List[Dict[str, Any]]:
        rows = (
            self._customers()
            .filter(created_at__gte=start)
            .annotate(month=TruncMonth("created_at"))
            .values("month")
            .annotate(count=models.Count("id"))
            .order_by("-month")[:MONTHS_SHOWN]
        )
        return [{"month": _month(row["month"]), "count": row["count"]} for row in rows]

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def inventory_totals(self, low_stock_threshold: int) -> Dict[str, Any]:
        products = Product.objects.alive()
        totals = products.aggregate(
            total_products=models.Count("id"),
            total_units=Coalesce(models.Sum("stock_quantity"), models.Value(0)),
            inventory_value=_sum_or_zero(
                models.ExpressionWrapper(
                    models.F("price") * models.F("stock_quantity"), output_field=_MONEY
                )
            ),
        )
        return {
            **totals,
            "low_stock": products.filter(
                stock_quantity__gt=0, stock_quantity__lte=low_stock_threshold
            ).count(),
            "out_of_stock": products.filter(stock_quantity=0).count(),
        }

    def top_sellers(self, limit: int) -> List[Dict[str, Any]]:
        rows = (
            OrderItem.objects.filter(order__deleted_at__isnull=True)
            .exclude(order__status=OrderStatus.CANCELLED)
            .values("product_id", "product__name", "product__sku")
            .annotate(units_sold=models.Sum("quantity"), revenue=_sum_or_zero("subtotal"))
            .order_by("-units_sold", "product__name")[:limit]
        )
        return [
            {
                "product_id": str(row["product_id"]),
                "name": row["product__name"],
                "sku": row["product__sku"],
                "units_sold": row["units_sold"],
                "revenue": row["revenue"],
            }
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Live counters
    # ------------------------------------------------------------------

    def pending_order_count(self) -> int:
        return Order.objects.alive().filter(status=OrderStatus.PENDING).count()

    def active_reservation_count(self, now: datetime) -> int:
        return StockReservation.objects.filter(released_at__isnull=True, expires_at__gt=now).count()

    # ------------------------------------------------------------------
    # Product
    # ------------------------------------------------------------------

    def product_exists(self, product_id: str) -> bool:
        try:
            return Product.objects.filter(id=product_id).exists()
        except (ValueError, ValidationError):
            return False

    def product_performance(self, product_id: str, start: datetime) -> Dict[str, Any]:
        items = OrderItem.objects.filter(
            product_id=product_id, order__deleted_at__isnull=True
        ).exclude(order__status=OrderStatus.CANCELLED)
        totals = items.aggregate(
            units_sold=Coalesce(models.Sum("quantity"), models.Value(0)),
            revenue=_sum_or_zero("subtotal"),
            order_count=models.Count("order_id", distinct=True),
        )
        reviews = Review.objects.filter(product_id=product_id).aggregate(
            average_rating=models.Avg("rating"), review_count=models.Count("id")
        )
        by_month = (
            items.filter(order__created_at__gte=start)
            .annotate(month=TruncMonth("order__created_at"))
            .values("month")
            .annotate(units=models.Sum("quantity"), revenue=_sum_or_zero("subtotal"))
            .order_by("-month")[:MONTHS_SHOWN]
        )
        average = reviews["average_rating"]
        return {
            **totals,
            "average_rating": round(float(average), 2) if average is not None else None,
            "review_count": reviews["review_count"],
            "sales_by_month": [
                {"month": _month(row["month"]), "units": row["units"], "revenue": row["revenue"]}
                for row in by_month
            ],
        }
