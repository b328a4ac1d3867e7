"""Back-office reporting.

Every ranged report compares the window ending now with the window of equal
length just before it.  Growth is a percentage of the previous value and is
``0.0`` when there is nothing to compare against.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

import structlog
from django.conf import settings
from django.utils import timezone

from modules.analytics.constants import TOP_SELLERS_LIMIT
from modules.products.exceptions import ProductNotFound

if TYPE_CHECKING:
    from modules.analytics.dtos import ReportRangeDTO
    from modules.analytics.repositories.interfaces import IAnalyticsRepository

logger = structlog.get_logger(__name__)

Number = Union[int, Decimal]


def growth(current: Number, previous: Number) -> float:
    if not previous:
        return 0.0
    return round(float((Decimal(current) - Decimal(previous)) / Decimal(previous) * 100), 2)


class AnalyticsService:
    def __init__(self, repository: IAnalyticsRepository) -> None:
        self._repo = repository

    def sales(self, period: ReportRangeDTO, now: Optional[datetime] = None) -> Dict[str, Any]:
        previous_start, start, end = period.bounds(now or timezone.now())
        current = self._repo.sales_totals(start, end)
        previous = self._repo.sales_totals(previous_start, start)
        return {
            "range": period.range,
            "total_revenue": current["revenue"],
            "total_orders": current["orders"],
            "average_order_value": current["average_order_value"],
            "previous_revenue": previous["revenue"],
            "previous_orders": previous["orders"],
            "revenue_growth": growth(current["revenue"], previous["revenue"]),
            "order_growth": growth(current["orders"], previous["orders"]),
            "revenue_by_month": self._repo.revenue_by_month(start),
            "orders_by_status": self._repo.orders_by_status(start),
        }

    def customers(self, period: ReportRangeDTO, now: Optional[datetime] = None) -> Dict[str, Any]:
        previous_start, start, end = period.bounds(now or timezone.now())
        new_customers = self._repo.customer_count(start, end)
        previous_new = self._repo.customer_count(previous_start, start)

        # Share of the previous window's buyers who bought again in this one.
        previous_buyers = self._repo.purchasing_customer_ids(previous_start, start)
        current_buyers = self._repo.purchasing_customer_ids(start, end)
        retention = (
            round(len(previous_buyers & current_buyers) / len(previous_buyers) * 100, 2)
            if previous_buyers
            else 0.0
        )
        return {
            "range": period.range,
            "total_customers": self._repo.customer_count(),
            "new_customers": new_customers,
            "new_customer_growth": growth(new_customers, previous_new),
            "repeat_customers": self._repo.repeat_customer_count(),
            "average_lifetime_value": self._repo.average_lifetime_value(),
            "retention_rate": retention,
            "customer_growth": self._repo.customer_growth(start),
        }

    def inventory(self) -> Dict[str, Any]:
        return {
            **self._repo.inventory_totals(settings.LOW_STOCK_THRESHOLD),
            "low_stock_threshold": settings.LOW_STOCK_THRESHOLD,
            "top_sellers": self._repo.top_sellers(TOP_SELLERS_LIMIT),
        }

    def dashboard(self, period: ReportRangeDTO) -> Dict[str, Any]:
        now = timezone.now()
        report = {
            "range": period.range,
            "sales": self.sales(period, now),
            "customers": self.customers(period, now),
            "inventory": self.inventory(),
            "generated_at": now,
        }
        logger.info("analytics.dashboard_built", range=period.range)
        return report

    def realtime(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or timezone.now()
        midnight = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)
        today = self._repo.sales_totals(midnight, None)
        last_hour = self._repo.sales_totals(now - timedelta(hours=1), None)
        return {
            "orders_today": today["orders"],
            "revenue_today": today["revenue"],
            "orders_last_hour": last_hour["orders"],
            "pending_orders": self._repo.pending_order_count(),
            "active_reservations": self._repo.active_reservation_count(now),
            "timestamp": now,
        }

    def product(self, product_id: str, period: ReportRangeDTO) -> Dict[str, Any]:
        if not self._repo.product_exists(product_id):
            raise ProductNotFound(f"Product {product_id} not found.")
        _, start, _ = period.bounds(timezone.now())
        return {
            "product_id": str(product_id),
            "range": period.range,
            **self._repo.product_performance(product_id, start),
        }

    def summary(self) -> Dict[str, Any]:
        lifetime = self._repo.sales_totals(None, None)
        inventory = self._repo.inventory_totals(settings.LOW_STOCK_THRESHOLD)
        return {
            "total_revenue": lifetime["revenue"],
            "total_orders": lifetime["orders"],
            "average_order_value": lifetime["average_order_value"],
            "total_customers": self._repo.customer_count(),
            "total_products": inventory["total_products"],
        }
