"""Unit tests for OrderService.

Covers:
- create_order: price snapshot, stock deduction, idempotency, inactive
  customer/product, insufficient stock (including other sessions' holds),
  saved-address shipping, discount redemption, confirmation email,
  paid amount checked against the discounted total.
- cancel_order: restock, owner/admin rules, post-shipment refusal.
- request_return: owner only, delivered orders only, support alert.
- modify_order: per-product stock reconciliation and the audit trail.
- Payment outcomes: mark_paid, mark_payment_failed, mark_refunded.
- Queries: visibility of other customers' orders, listings and stats.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from django.core import mail
from django.utils import timezone

from modules.accounts.exceptions import AddressNotFound
from modules.accounts.models import Address
from modules.marketing.constants import DiscountType
from modules.marketing.exceptions import InvalidDiscount
from modules.marketing.models import DiscountCode
from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.dtos import (
    CreateOrderDTO,
    ModifyOrderDTO,
    OrderQueryDTO,
    UpdateStatusDTO,
)
from modules.orders.events import ReturnRequested
from modules.orders.exceptions import (
    InactiveCustomer,
    InactiveProduct,
    NotOrderOwner,
    OrderNotCancellable,
    OrderNotFound,
    OrderNotModifiable,
    PaymentAmountMismatch,
    ReturnNotAllowed,
)
from modules.orders.handlers import return_requested_handler
from modules.orders.models import Order
from modules.orders.services import OrderService, build_order_service
from modules.products.constants import ProductStatus
from modules.products.dtos import StockRequestDTO
from modules.products.exceptions import InsufficientStock, ProductNotFound
from modules.products.models import StockReservation
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import ProductService

pytestmark = pytest.mark.unit

SHIPPING = {"name": "Ana Souza", "address": "123 Main St", "city": "Portland", "zip": "97201"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def service():
    return build_order_service()


def _dto(*lines, **extra) -> CreateOrderDTO:
    extra.setdefault("shipping_info", SHIPPING)
    return CreateOrderDTO(
        items=[{"product_id": p.id, "quantity": q} for p, q in lines],
        **extra,
    )


def _deliver(service, order, admin_user):
    for status in (OrderStatus.CONFIRMED, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        order = service.update_status(str(order.id), UpdateStatusDTO(status=status), admin_user)
    return order


# ===========================================================================
# Creation
# ===========================================================================


class TestCreateOrder:
    def test_snapshots_prices_and_deducts_stock(self, service, customer, product):
        order = service.create_order(customer, _dto((product, 3)), actor=customer.user)

        product.refresh_from_db()
        item = order.items.get()
        assert order.status == OrderStatus.PENDING
        assert order.total_amount == Decimal("89.97")
        assert item.unit_price == Decimal("29.99")
        assert product.stock_quantity == 47
        assert order.order_number.startswith("ORD-")

    def test_price_change_does_not_touch_existing_order(self, service, customer, product):
        order = service.create_order(customer, _dto((product, 1)))
        product.price = Decimal("99.00")
        product.save()

        order.refresh_from_db()
        assert order.total_amount == Decimal("29.99")

    def test_sends_confirmation(self, service, customer, product, settings):
        service.create_order(customer, _dto((product, 1)))

        assert mail.outbox[0].to == [customer.email]
        assert mail.outbox[0].subject == f"Order Confirmation - {settings.STORE_NAME}"

    def test_idempotency_key_replays(self, service, customer, product):
        first = service.create_order(customer, _dto((product, 1), idempotency_key="abc"))
        second = service.create_order(customer, _dto((product, 1), idempotency_key="abc"))

        product.refresh_from_db()
        assert first.id == second.id
        assert Order.objects.count() == 1
        assert product.stock_quantity == 49

    def test_inactive_customer(self, service, customer, product):
        customer.is_active = False
        customer.save()
        with pytest.raises(InactiveCustomer):
            service.create_order(customer, _dto((product, 1)))

    def test_inactive_product(self, service, customer, make_product):
        hidden = make_product(status=ProductStatus.INACTIVE)
        with pytest.raises(InactiveProduct):
            service.create_order(customer, _dto((hidden, 1)))

    def test_unknown_product(self, service, customer):
        dto = CreateOrderDTO(
            items=[{"product_id": uuid4(), "quantity": 1}], shipping_info=SHIPPING
        )
        with pytest.raises(ProductNotFound):
            service.create_order(customer, dto)

    def test_insufficient_stock_creates_nothing(self, service, customer, product, make_product):
        scarce = make_product(stock_quantity=1)

        with pytest.raises(InsufficientStock) as exc_info:
            service.create_order(customer, _dto((product, 1), (scarce, 2)))

        product.refresh_from_db()
        assert exc_info.value.items[0]["product_id"] == str(scarce.id)
        assert product.stock_quantity == 50
        assert Order.objects.count() == 0

    def test_other_sessions_holds_are_respected(self, service, customer, make_product):
        scarce = make_product(stock_quantity=2)
        ProductService(ProductDjangoRepository()).reserve_stock(
            StockRequestDTO(
                items=[{"product_id": str(scarce.id), "quantity": 2}], session_id="someone-else"
            )
        )

        with pytest.raises(InsufficientStock):
            service.create_order(customer, _dto((scarce, 1), session_id="mine"))

    def test_own_holds_are_consumed(self, service, customer, make_product):
        scarce = make_product(stock_quantity=2)
        ProductService(ProductDjangoRepository()).reserve_stock(
            StockRequestDTO(items=[{"product_id": str(scarce.id), "quantity": 2}], session_id="mine")
        )

        service.create_order(customer, _dto((scarce, 2), session_id="mine"))

        scarce.refresh_from_db()
        assert scarce.stock_quantity == 0
        assert StockReservation.objects.active().count() == 0

    def test_ships_to_saved_address(self, service, customer, product):
        address = Address.objects.create(
            customer=customer, name="Ana Souza", line1="9 Oak Ave", city="Salem", zip_code="97301"
        )
        order = service.create_order(
            customer, _dto((product, 1), shipping_info=None, address_id=address.id)
        )
        assert order.shipping_info["address"] == "9 Oak Ave"

    def test_someone_elses_address(self, service, customer, other_customer, product):
        address = Address.objects.create(
            customer=other_customer, name="Bruno", line1="1 Elm", city="Bend", zip_code="97701"
        )
        with pytest.raises(AddressNotFound):
            service.create_order(
                customer, _dto((product, 1), shipping_info=None, address_id=address.id)
            )


class TestDiscounts:
    @pytest.fixture()
    def discount(self):
        return DiscountCode.objects.create(
            code="WELCOME10", discount_type=DiscountType.PERCENTAGE, value=Decimal("10")
        )

    def test_discount_is_applied_and_counted(self, service, customer, product, discount):
        order = service.create_order(customer, _dto((product, 2), discount_code="welcome10"))

        discount.refresh_from_db()
        assert order.discount_code == "WELCOME10"
        assert order.discount_amount == Decimal("6.00")
        assert order.total_amount == Decimal("53.98")
        assert discount.used_count == 1

    def test_used_up_code_rejects_order(self, service, customer, product, discount):
        discount.max_uses = 1
        discount.used_count = 1
        discount.save()

        with pytest.raises(InvalidDiscount):
            service.create_order(customer, _dto((product, 1), discount_code="WELCOME10"))
        assert Order.objects.count() == 0

    def test_without_discount_service_codes_are_ignored(self, customer, product):
        from modules.accounts.repositories.django_repository import CustomerDjangoRepository
        from modules.orders.repositories.django_repository import OrderDjangoRepository

        service = OrderService(
            order_repository=OrderDjangoRepository(),
            customer_repository=CustomerDjangoRepository(),
            product_repository=ProductDjangoRepository(),
        )
        order = service.create_order(customer, _dto((product, 1), discount_code="ANY"))
        assert order.discount_amount == Decimal("0.00")

    def test_paid_amount_matches_discounted_total(self, service, customer, product, discount):
        order = service.create_order(
            customer,
            _dto((product, 2), discount_code="WELCOME10", paid_amount=Decimal("53.98")),
        )
        assert order.total_amount == Decimal("53.98")

    def test_paid_amount_mismatch_rolls_back_redemption(
        self, service, customer, product, discount
    ):
        with pytest.raises(PaymentAmountMismatch):
            service.create_order(
                customer,
                _dto((product, 2), discount_code="WELCOME10", paid_amount=Decimal("59.98")),
            )

        discount.refresh_from_db()
        product.refresh_from_db()
        assert Order.objects.count() == 0
        assert discount.used_count == 0
        assert product.stock_quantity == 50


# ===========================================================================
# Cancellation
# ===========================================================================


class TestCancelOrder:
    def test_owner_cancels_and_stock_returns(self, service, customer, order, product):
        cancelled = service.cancel_order(str(order.id), "Changed my mind", actor=customer.user)

        product.refresh_from_db()
        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.cancellation_reason == "Changed my mind"
        assert product.stock_quantity == 50

    def test_default_reason(self, service, customer, order):
        cancelled = service.cancel_order(str(order.id), actor=customer.user)
        assert cancelled.cancellation_reason == "Cancelled by customer"

    def test_admin_may_cancel(self, service, order, admin_user):
        cancelled = service.cancel_order(str(order.id), actor=admin_user)
        assert cancelled.status == OrderStatus.CANCELLED

    def test_other_customer_forbidden(self, service, order, other_customer):
        with pytest.raises(NotOrderOwner):
            service.cancel_order(str(order.id), actor=other_customer.user)

    def test_shipped_order_not_cancellable(self, service, customer, order, admin_user):
        for status in (OrderStatus.CONFIRMED, OrderStatus.SHIPPED):
            service.update_status(str(order.id), UpdateStatusDTO(status=status), admin_user)

        with pytest.raises(OrderNotCancellable):
            service.cancel_order(str(order.id), actor=customer.user)

    def test_second_cancel_does_not_restock_twice(self, service, customer, order, product):
        service.cancel_order(str(order.id), actor=customer.user)
        with pytest.raises(OrderNotCancellable):
            service.cancel_order(str(order.id), actor=customer.user)

        product.refresh_from_db()
        assert product.stock_quantity == 50


# ===========================================================================
# Returns
# ===========================================================================


class TestRequestReturn:
    def test_delivered_order(self, service, customer, order, admin_user):
        _deliver(service, order, admin_user)

        returned = service.request_return(str(order.id), "Damaged box", actor=customer.user)

        assert returned.status == OrderStatus.RETURN_REQUESTED
        assert [h.reason for h in OrderService.split_history(returned)["return_history"]] == [
            "Damaged box"
        ]

    def test_not_delivered(self, service, customer, order):
        with pytest.raises(ReturnNotAllowed):
            service.request_return(str(order.id), actor=customer.user)

    def test_admin_cannot_request_for_customer(self, service, order, admin_user):
        _deliver(service, order, admin_user)
        with pytest.raises(NotOrderOwner):
            service.request_return(str(order.id), actor=admin_user)

    def test_handler_alerts_support(self, order, settings):
        mail.outbox.clear()

        return_requested_handler.handle(ReturnRequested(aggregate_id=order.id, reason="Broken"))

        assert mail.outbox[0].to == [settings.SUPPORT_EMAIL]
        assert "Broken" in mail.outbox[0].body


# ===========================================================================
# Modification
# ===========================================================================


class TestModifyOrder:
    def test_reconciles_stock_per_product(
        self, service, order, product, make_product, admin_user
    ):
        extra = make_product(price=Decimal("10.00"), stock_quantity=5)

        modified = service.modify_order(
            str(order.id),
            ModifyOrderDTO(
                items=[
                    {"product_id": product.id, "quantity": 1},
                    {"product_id": extra.id, "quantity": 3},
                ],
                reason="Customer phoned in",
            ),
            actor=admin_user,
        )

        product.refresh_from_db()
        extra.refresh_from_db()
        assert product.stock_quantity == 49
        assert extra.stock_quantity == 2
        assert modified.total_amount == Decimal("59.99")
        assert modified.items.count() == 2

    def test_audit_trail(self, service, order, product, admin_user):
        modified = service.modify_order(
            str(order.id),
            ModifyOrderDTO(
                items=[{"product_id": product.id, "quantity": 1}],
                shipping_info={**SHIPPING, "city": "Eugene"},
            ),
            actor=admin_user,
        )

        entry = modified.modification_history[-1]
        assert entry["modifiedBy"] == "admin@example.com"
        assert entry["previousTotal"] == "59.98"
        assert entry["newTotal"] == "29.99"
        assert entry["newShipping"]["city"] == "Eugene"
        assert modified.shipping_info["city"] == "Eugene"

    def test_not_enough_stock_for_added_units(self, service, order, product, admin_user):
        with pytest.raises(InsufficientStock):
            service.modify_order(
                str(order.id),
                ModifyOrderDTO(items=[{"product_id": product.id, "quantity": 500}]),
                actor=admin_user,
            )

    def test_shipped_order_not_modifiable(self, service, order, product, admin_user):
        for status in (OrderStatus.CONFIRMED, OrderStatus.SHIPPED):
            service.update_status(str(order.id), UpdateStatusDTO(status=status), admin_user)

        with pytest.raises(OrderNotModifiable):
            service.modify_order(
                str(order.id),
                ModifyOrderDTO(items=[{"product_id": product.id, "quantity": 1}]),
                actor=admin_user,
            )


# ===========================================================================
# Payment outcomes
# ===========================================================================


class TestPaymentOutcomes:
    def test_mark_paid(self, service, order):
        paid = service.mark_paid(str(order.id))
        assert paid.payment_status == PaymentStatus.SUCCEEDED

    def test_payment_failed_cancels_and_restocks(self, service, order, product):
        failed = service.mark_payment_failed(str(order.id), "Card declined")

        product.refresh_from_db()
        assert failed.payment_status == PaymentStatus.FAILED
        assert failed.status == OrderStatus.CANCELLED
        assert failed.cancellation_reason == "Card declined"
        assert product.stock_quantity == 50

    def test_payment_failed_after_delivery_keeps_status(self, service, order, admin_user):
        _deliver(service, order, admin_user)

        failed = service.mark_payment_failed(str(order.id))

        assert failed.status == OrderStatus.DELIVERED
        assert failed.payment_status == PaymentStatus.FAILED

    def test_refund_from_any_state(self, service, order, admin_user):
        _deliver(service, order, admin_user)

        refunded = service.mark_refunded(str(order.id), actor=admin_user)

        assert refunded.status == OrderStatus.REFUNDED
        assert refunded.payment_status == PaymentStatus.REFUNDED


# ===========================================================================
# Queries
# ===========================================================================


class TestQueries:
    def test_owner_sees_order(self, service, customer, order):
        assert service.get_order(str(order.id), customer.user) == order

    def test_other_customer_gets_not_found(self, service, order, other_customer):
        with pytest.raises(OrderNotFound):
            service.get_order(str(order.id), other_customer.user)

    def test_admin_sees_any_order(self, service, order, admin_user):
        assert service.get_order(str(order.id), admin_user) == order

    def test_list_for_customer_is_scoped(
        self, service, customer, other_customer, product, make_order, order
    ):
        make_order(other_customer, [(product, 1)])

        orders = service.list_for_customer(customer, OrderQueryDTO())

        assert list(orders) == [order]

    def test_list_all_filters_and_pages(self, service, customer, other_customer, product, make_order):
        make_order(customer, [(product, 1)])
        make_order(other_customer, [(product, 1)])

        result = service.list_all(OrderQueryDTO(customer_email="bruno", limit=1))

        assert result["total"] == 1
        assert result["has_more"] is False
        assert result["items"][0].customer == other_customer

    def test_stats(self, service, order, admin_user):
        _deliver(service, order, admin_user)

        stats = service.stats()

        assert stats["recent_orders"] == 1
        assert stats["total_revenue"] == Decimal("59.98")
        assert {row["status"] for row in stats["status_stats"]} == {OrderStatus.DELIVERED}

    def test_stats_excludes_old_orders_from_recent(self, service, order):
        Order.objects.filter(pk=order.pk).update(created_at=timezone.now() - timedelta(days=8))
        assert service.stats()["recent_orders"] == 0


class TestWithMockRepositories:
    def test_unknown_order_raises_before_any_write(self):
        order_repo = MagicMock()
        order_repo.get_for_update.return_value = None
        service = OrderService(order_repo, MagicMock(), MagicMock())

        with pytest.raises(OrderNotFound):
            service.cancel_order(str(uuid4()))

        order_repo.save.assert_not_called()
        order_repo.add_history.assert_not_called()
