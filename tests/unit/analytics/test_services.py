"""Unit tests for AnalyticsService with the ORM repository.

Covers:
- growth() and ReportRangeDTO parsing.
- Sales window vs previous window, cancelled orders excluded.
- Customer counts, repeat buyers and retention.
- Inventory totals and top sellers.
- Realtime counters and per-product performance.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from freezegun import freeze_time
from pydantic import ValidationError

from modules.analytics.dtos import ReportRangeDTO
from modules.analytics.repositories.django_repository import AnalyticsDjangoRepository
from modules.analytics.services import AnalyticsService, growth
from modules.orders.constants import OrderStatus
from modules.orders.models import Order
from modules.products.exceptions import ProductNotFound
from modules.products.models import StockReservation

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def service():
    return AnalyticsService(AnalyticsDjangoRepository())


@pytest.fixture()
def backdate():
    def _backdate(order, days):
        Order.objects.filter(pk=order.pk).update(created_at=timezone.now() - timedelta(days=days))

    return _backdate


# ===========================================================================
# Helpers
# ===========================================================================


class TestGrowth:
    @pytest.mark.parametrize(
        "current, previous, expected",
        [
            (Decimal("150"), Decimal("100"), 50.0),
            (50, 100, -50.0),
            (5, 0, 0.0),
            (Decimal("0"), Decimal("0"), 0.0),
        ],
    )
    def test_growth(self, current, previous, expected):
        assert growth(current, previous) == expected


class TestReportRangeDTO:
    @pytest.mark.parametrize("value", [None, ""])
    def test_default(self, value):
        assert ReportRangeDTO(range=value).days == 30

    def test_unknown_range(self):
        with pytest.raises(ValidationError, match="Range must be one of"):
            ReportRangeDTO(range="2w")

    def test_bounds(self):
        now = timezone.now()
        previous_start, start, end = ReportRangeDTO(range="7d").bounds(now)
        assert end - start == timedelta(days=7)
        assert start - previous_start == timedelta(days=7)


# ===========================================================================
# Reports
# ===========================================================================


class TestSales:
    def test_window_comparison(self, service, customer, product, make_order, order, backdate):
        old = make_order(customer, [(product, 1)])
        backdate(old, 40)
        ancient = make_order(customer, [(product, 1)])
        backdate(ancient, 100)

        report = service.sales(ReportRangeDTO(range="30d"))

        assert report["total_revenue"] == Decimal("59.98")
        assert report["total_orders"] == 1
        assert report["average_order_value"] == Decimal("59.98")
        assert report["previous_revenue"] == Decimal("29.99")
        assert report["revenue_growth"] == 100.0
        assert report["order_growth"] == 0.0
        assert report["orders_by_status"] == [{"status": OrderStatus.PENDING, "count": 1}]

    def test_cancelled_orders_excluded(self, service, customer, product, make_order, order):
        cancelled = make_order(customer, [(product, 1)])
        Order.objects.filter(pk=cancelled.pk).update(status=OrderStatus.CANCELLED)

        report = service.sales(ReportRangeDTO())

        assert report["total_orders"] == 1
        assert report["total_revenue"] == Decimal("59.98")
        assert sum(row["orders"] for row in report["revenue_by_month"]) == 1

    def test_empty(self, service):
        report = service.sales(ReportRangeDTO())
        assert report["total_revenue"] == Decimal("0.00")
        assert report["average_order_value"] == Decimal("0.00")
        assert report["revenue_by_month"] == []


class TestCustomers:
    def test_counts_and_retention(
        self, service, customer, other_customer, admin_user, product, make_order, backdate
    ):
        previous = make_order(customer, [(product, 1)])
        backdate(previous, 45)
        make_order(customer, [(product, 1)])
        lapsed = make_order(other_customer, [(product, 1)])
        backdate(lapsed, 50)

        report = service.customers(ReportRangeDTO(range="30d"))

        assert report["total_customers"] == 2
        assert report["new_customers"] == 2
        assert report["repeat_customers"] == 1
        assert report["retention_rate"] == 50.0
        assert report["average_lifetime_value"] == Decimal("44.99")


class TestInventory:
    def test_totals_and_top_sellers(self, service, make_product, product, order):
        make_product(sku="LOW-1", stock_quantity=3, price=Decimal("10.00"))
        make_product(sku="OUT-1", stock_quantity=0)

        report = service.inventory()

        assert report["total_products"] == 3
        assert report["total_units"] == 48 + 3
        assert report["inventory_value"] == Decimal("29.99") * 48 + Decimal("30.00")
        assert report["low_stock"] == 1
        assert report["out_of_stock"] == 1
        assert report["low_stock_threshold"] == 5
        assert report["top_sellers"] == [
            {
                "product_id": str(product.id),
                "name": product.name,
                "sku": "MON-001",
                "units_sold": 2,
                "revenue": Decimal("59.98"),
            }
        ]


class TestRealtime:
    def test_counters(self, service, customer, product, make_order):
        with freeze_time("2026-05-10 15:00:00"):
            make_order(customer, [(product, 1)])
            StockReservation.objects.create(
                product=product,
                quantity=1,
                session_id="cart-1",
                expires_at=timezone.now() + timedelta(minutes=15),
            )

            report = service.realtime()

        assert report["orders_today"] == 1
        assert report["revenue_today"] == Decimal("29.99")
        assert report["orders_last_hour"] == 1
        assert report["pending_orders"] == 1
        assert report["active_reservations"] == 1


class TestProduct:
    def test_performance(self, service, product, order):
        report = service.product(str(product.id), ReportRangeDTO())

        assert report["units_sold"] == 2
        assert report["revenue"] == Decimal("59.98")
        assert report["order_count"] == 1
        assert report["average_rating"] is None
        assert report["review_count"] == 0
        assert len(report["sales_by_month"]) == 1

    def test_unknown_product(self, service):
        with pytest.raises(ProductNotFound):
            service.product("not-a-uuid", ReportRangeDTO())


class TestSummary:
    def test_lifetime_totals(self, service, customer, product, order):
        summary = service.summary()
        assert summary == {
            "total_revenue": Decimal("59.98"),
            "total_orders": 1,
            "average_order_value": Decimal("59.98"),
            "total_customers": 1,
            "total_products": 1,
        }
