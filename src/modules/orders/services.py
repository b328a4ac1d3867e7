"""Order service layer (Use Cases).

Orchestrates the order lifecycle: creation, status management,
cancellation, returns, admin modifications and payment outcomes.  All
write operations are atomic; the service defines the unit-of-work boundary.

Business rules enforced:
- Customer must be active; products must be active.
- Products are locked (``SELECT FOR UPDATE``) in primary-key order before
  stock is checked or moved.
- Stock held by other checkout sessions is not available to the order.
- Status transitions are validated against ``VALID_TRANSITIONS`` on a
  locked row and every change is written to the history.
- Cancelling before shipment puts the stock back.
- Customers only cancel before shipment and only return delivered orders.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.accounts.exceptions import AddressNotFound
from modules.core.permissions import is_admin
from modules.orders import notifications
from modules.orders.constants import (
    ADMIN_SORT_FIELDS,
    CUSTOMER_CANCELLABLE_STATES,
    DEFAULT_CANCELLATION_REASON,
    PRE_SHIPMENT_STATES,
    REVENUE_STATES,
    SORT_FIELDS,
    UNMODIFIABLE_STATES,
    OrderStatus,
    PaymentStatus,
    ProcessType,
)
from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderRefunded,
    OrderStatusChanged,
    ReturnRequested,
)
from modules.orders.exceptions import (
    InactiveCustomer,
    InactiveProduct,
    InvalidOrderStatus,
    NotOrderOwner,
    OrderNotCancellable,
    OrderNotFound,
    OrderNotModifiable,
    PaymentAmountMismatch,
    ReturnNotAllowed,
)
from modules.products.exceptions import InsufficientStock, ProductNotFound

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

    from modules.accounts.models import Customer
    from modules.accounts.repositories.interfaces import ICustomerRepository
    from modules.marketing.services import DiscountService
    from modules.orders.dtos import (
        CreateOrderDTO,
        CreateOrderItemDTO,
        ModifyOrderDTO,
        OrderQueryDTO,
        UpdateStatusDTO,
    )
    from modules.orders.models import Order, OrderStatusHistory
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


def _actor_label(user: Optional[AbstractBaseUser]) -> str:
    if user is None or not getattr(user, "is_authenticated", False):
        return "system"
    return user.email or user.get_username()


class OrderService:
    """Application service for Order use-cases.

    Receives repositories via constructor injection (DIP).  The discount
    service is optional; without it discount codes are ignored.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        customer_repository: ICustomerRepository,
        product_repository: IProductRepository,
        discount_service: Optional[DiscountService] = None,
    ) -> None:
        self._order_repo = order_repository
        self._customer_repo = customer_repository
        self._product_repo = product_repository
        self._discounts = discount_service

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def find_by_idempotency_key(self, key: Optional[str]) -> Optional[Order]:
        if not key:
            return None
        return self._order_repo.get_by_idempotency_key(key)

    @transaction.atomic
    def create_order(
        self,
        customer: Customer,
        dto: CreateOrderDTO,
        actor: Optional[AbstractBaseUser] = None,
    ) -> Order:
        """Create an order, moving stock out of the catalog.

        Steps:
        1. Return the existing order when the idempotency key was used.
        2. Lock every product (sorted by PK to avoid deadlocks), validate it
           is active and, unless ``enforce_stock`` is off, that enough stock
           is free once other sessions' holds are subtracted.
        3. Snapshot prices, deduct stock and drop the session's holds.
        4. Apply the discount code, persist order + items, record history.
        5. Email the confirmation.

        Raises:
            InactiveCustomer: customer is deactivated.
            AddressNotFound: ``address_id`` is not one of the customer's.
            ProductNotFound: a product does not exist.
            InactiveProduct: a product is inactive.
            InsufficientStock: not enough free stock.
            PaymentAmountMismatch: ``paid_amount`` differs from the total.
        """
        log = logger.bind(customer_id=str(customer.id))
        log.info("order.creation_started", item_count=len(dto.items))

        existing = self.find_by_idempotency_key(dto.idempotency_key)
        if existing:
            log.info("order.idempotency_hit", order_id=str(existing.id))
            return existing

        if not customer.is_active:
            raise InactiveCustomer()

        shipping_info = self._resolve_shipping(customer, dto)
        products = self._lock_products(item.product_id for item in dto.items)

        if dto.enforce_stock:
            self._ensure_available(products, dto.items, dto.session_id)

        repo_items: List[Dict[str, Any]] = []
        subtotal = Decimal("0.00")
        for item in sorted(dto.items, key=lambda i: str(i.product_id)):
            product = products[str(item.product_id)]
            self._move_stock(product, -item.quantity)
            repo_items.append(
                {
                    "product_id": product.id,
                    "quantity": item.quantity,
                    "unit_price": product.price,
                }
            )
            subtotal += product.price * item.quantity

        if dto.session_id:
            self._product_repo.release_session(dto.session_id)

        discount_code = ""
        discount_amount = Decimal("0.00")
        if dto.discount_code and self._discounts is not None:
            discount_amount = self._discounts.redeem(dto.discount_code, subtotal)
            discount_code = dto.discount_code.strip().upper()

        total = max(Decimal("0.00"), subtotal - discount_amount)
        if dto.paid_amount is not None and dto.paid_amount != total:
            log.warning(
                "order.payment_amount_mismatch",
                paid_amount=str(dto.paid_amount),
                total_amount=str(total),
            )
            raise PaymentAmountMismatch()

        order = self._order_repo.create(
            {
                "customer_id": customer.id,
                "items": repo_items,
                "status": dto.initial_status,
                "shipping_info": shipping_info,
                "notes": dto.notes or "",
                "discount_code": discount_code,
                "discount_amount": discount_amount,
                "payment_method": dto.payment_method,
                "payment_intent_id": dto.payment_intent_id,
                "payment_status": dto.payment_status,
                "idempotency_key": dto.idempotency_key,
            }
        )
        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                order_number=order.order_number,
                customer_id=str(customer.id),
                total_amount=str(order.total_amount),
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            status=order.status,
            reason="Order created",
            user=actor,
        )

        order = self._order_repo.get_by_id(str(order.id)) or order
        if notifications.send_order_confirmation(order):
            order.record_notification(order.status)
            order.save(update_fields=["notification_sent", "updated_at"])

        log.info(
            "order.created",
            order_id=str(order.id),
            order_number=order.order_number,
            total_amount=str(order.total_amount),
            discount_amount=str(discount_amount),
        )
        return order

    def _resolve_shipping(self, customer: Customer, dto: CreateOrderDTO) -> Dict[str, Any]:
        if dto.shipping_info is not None:
            return dto.shipping_info.model_dump()
        address = self._customer_repo.get_address(str(customer.id), str(dto.address_id))
        if not address:
            raise AddressNotFound()
        return address.as_shipping_info()

    def _lock_products(self, product_ids: Iterable[Any]) -> Dict[str, Product]:
        ids = [str(product_id) for product_id in product_ids]
        products = self._product_repo.lock_many(ids)
        for product_id in ids:
            product = products.get(product_id)
            if product is None or product.is_deleted:
                raise ProductNotFound(f"Product {product_id} not found.")
            if not product.is_active:
                raise InactiveProduct(f"Product {product.name} is not available for sale.")
        return products

    def _ensure_available(
        self,
        products: Dict[str, Product],
        items: Iterable[CreateOrderItemDTO],
        session_id: Optional[str],
    ) -> None:
        shortages = []
        for item in items:
            product = products[str(item.product_id)]
            held = self._product_repo.reserved_quantity(str(product.id), exclude_session=session_id)
            available = max(0, product.stock_quantity - held)
            if available < item.quantity:
                shortages.append(
                    {
                        "product_id": str(product.id),
                        "name": product.name,
                        "available": available,
                        "requested": item.quantity,
                    }
                )
        if shortages:
            logger.warning("order.insufficient_stock", shortages=shortages)
            names = ", ".join(shortage["name"] for shortage in shortages)
            raise InsufficientStock(f"Insufficient stock for: {names}.", items=shortages)

    def _move_stock(self, product: Product, delta: int) -> None:
        product.set_stock(max(0, product.stock_quantity + delta), settings.LOW_STOCK_THRESHOLD)
        self._product_repo.save(product)
        logger.info(
            "order.stock_moved",
            product_id=str(product.id),
            delta=delta,
            stock_quantity=product.stock_quantity,
        )

    def _restore_stock(self, order: Order) -> None:
        items = list(order.items.all())
        products = self._product_repo.lock_many(str(item.product_id) for item in items)
        for item in items:
            product = products.get(str(item.product_id))
            if product is not None:
                self._move_stock(product, item.quantity)

    # ------------------------------------------------------------------
    # Status management
    # ------------------------------------------------------------------

    def _locked(self, order_id: str) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _apply_status(
        self,
        order: Order,
        new_status: str,
        reason: str,
        actor: Optional[AbstractBaseUser],
        process_type: Optional[str] = None,
    ) -> str:
        """Move ``order`` to ``new_status``, record history and notify.

        The caller has already validated the transition.
        """
        old_status = order.status
        order.status = new_status
        order.add_domain_event(
            OrderStatusChanged(aggregate_id=order.id, old_status=old_status, new_status=new_status)
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            status=new_status,
            reason=reason,
            old_status=old_status,
            user=actor,
            process_type=process_type,
        )
        if notifications.send_status_update(order, new_status):
            order.record_notification(new_status)
            order.save(update_fields=["notification_sent", "updated_at"])
        return old_status

    @transaction.atomic
    def update_status(
        self,
        order_id: str,
        dto: UpdateStatusDTO,
        actor: Optional[AbstractBaseUser] = None,
    ) -> Order:
        """Admin status change following the transition table.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: transition is not allowed.
        """
        order = self._locked(order_id)
        new_status = dto.status
        log = logger.bind(order_id=str(order_id), current_status=order.status, new_status=new_status)

        if not order.can_transition_to(new_status):
            log.warning("order.invalid_transition")
            raise InvalidOrderStatus(f"Cannot transition from {order.status} to {new_status}.")

        if dto.tracking_number:
            order.tracking_number = dto.tracking_number
        if dto.estimated_delivery:
            order.estimated_delivery = dto.estimated_delivery
        if new_status == OrderStatus.DELIVERED:
            order.actual_delivery = timezone.now()

        stock_restored = False
        if new_status == OrderStatus.CANCELLED:
            if dto.reason:
                order.cancellation_reason = dto.reason
            if order.status in PRE_SHIPMENT_STATES:
                self._restore_stock(order)
                stock_restored = True
            order.add_domain_event(
                OrderCancelled(
                    aggregate_id=order.id,
                    reason=order.cancellation_reason,
                    stock_restored=stock_restored,
                )
            )

        self._apply_status(order, new_status, dto.reason or "Status updated by admin", actor)
        log.info("order.status_updated", stock_restored=stock_restored)
        return self._order_repo.get_by_id(str(order_id))

    @transaction.atomic
    def cancel_order(
        self,
        order_id: str,
        reason: str = "",
        actor: Optional[AbstractBaseUser] = None,
    ) -> Order:
        """Cancel a pre-shipment order and put its stock back.

        The order row is locked first so concurrent cancellations cannot
        release stock twice.

        Raises:
            OrderNotFound: order does not exist.
            NotOrderOwner: caller is neither the owner nor an admin.
            OrderNotCancellable: order already left the warehouse.
        """
        order = self._locked(order_id)
        self._check_owner(order, actor, allow_admin=True)
        log = logger.bind(order_id=str(order_id), current_status=order.status)

        if order.status not in CUSTOMER_CANCELLABLE_STATES:
            log.warning("order.cancel_not_allowed")
            raise OrderNotCancellable()

        self._restore_stock(order)
        order.cancellation_reason = reason or DEFAULT_CANCELLATION_REASON
        order.add_domain_event(
            OrderCancelled(
                aggregate_id=order.id,
                reason=order.cancellation_reason,
                stock_restored=True,
            )
        )
        self._apply_status(order, OrderStatus.CANCELLED, reason or "Order cancelled", actor)

        log.info("order.cancelled")
        return self._order_repo.get_by_id(str(order_id))

    @transaction.atomic
    def request_return(
        self,
        order_id: str,
        reason: str = "",
        actor: Optional[AbstractBaseUser] = None,
    ) -> Order:
        """Raises:
        OrderNotFound: order does not exist.
        NotOrderOwner: only the customer who placed the order may ask.
        ReturnNotAllowed: order is not delivered.
        """
        order = self._locked(order_id)
        self._check_owner(order, actor, allow_admin=False)

        if not order.can_transition_to(OrderStatus.RETURN_REQUESTED):
            raise ReturnNotAllowed()

        reason = reason or "Customer requested return"
        order.add_domain_event(ReturnRequested(aggregate_id=order.id, reason=reason))
        self._apply_status(
            order, OrderStatus.RETURN_REQUESTED, reason, actor, process_type=ProcessType.RETURN
        )
        logger.info("order.return_requested", order_id=str(order_id))
        return self._order_repo.get_by_id(str(order_id))

    @transaction.atomic
    def modify_order(
        self,
        order_id: str,
        dto: ModifyOrderDTO,
        actor: Optional[AbstractBaseUser] = None,
    ) -> Order:
        """Replace the lines (and optionally the shipping address) of an order.

        Stock is reconciled per product: extra units are taken from the
        catalog, removed units go back.

        Raises:
            OrderNotFound: order does not exist.
            OrderNotModifiable: order is shipped, delivered, cancelled or refunded.
            InsufficientStock: not enough stock for the added units.
        """
        order = self._locked(order_id)
        log = logger.bind(order_id=str(order_id), status=order.status)
        if order.status in UNMODIFIABLE_STATES:
            log.warning("order.modify_not_allowed")
            raise OrderNotModifiable()

        previous_total = order.total_amount
        previous_quantities: Dict[str, int] = {}
        for item in order.items.all():
            key = str(item.product_id)
            previous_quantities[key] = previous_quantities.get(key, 0) + item.quantity
        new_quantities = {str(item.product_id): item.quantity for item in dto.items}

        products = self._product_repo.lock_many(set(previous_quantities) | set(new_quantities))
        for product_id in new_quantities:
            product = products.get(product_id)
            if product is None:
                raise ProductNotFound(f"Product {product_id} not found.")
            if not product.is_active and product_id not in previous_quantities:
                raise InactiveProduct(f"Product {product.name} is not available for sale.")

        shortages = []
        for product_id, product in products.items():
            delta = new_quantities.get(product_id, 0) - previous_quantities.get(product_id, 0)
            if delta > product.stock_quantity:
                shortages.append(
                    {
                        "product_id": product_id,
                        "name": product.name,
                        "available": product.stock_quantity,
                        "requested": delta,
                    }
                )
        if shortages:
            raise InsufficientStock("Not enough stock for the modified order.", items=shortages)

        for product_id in sorted(products):
            delta = new_quantities.get(product_id, 0) - previous_quantities.get(product_id, 0)
            if delta:
                self._move_stock(products[product_id], -delta)

        self._order_repo.replace_items(
            order,
            [
                {
                    "product_id": products[str(item.product_id)].id,
                    "quantity": item.quantity,
                    "unit_price": products[str(item.product_id)].price,
                }
                for item in dto.items
            ],
        )

        previous_shipping = None
        new_shipping = None
        if dto.shipping_info is not None:
            previous_shipping = order.shipping_info
            new_shipping = dto.shipping_info.model_dump()
            order.shipping_info = new_shipping

        order.record_modification(
            modified_by=_actor_label(actor),
            reason=dto.reason or "Order modified by admin",
            previous_total=previous_total,
            new_total=order.total_amount,
            previous_shipping=previous_shipping,
            new_shipping=new_shipping,
        )
        self._order_repo.save(order)

        log.info(
            "order.modified",
            previous_total=str(previous_total),
            new_total=str(order.total_amount),
        )
        return self._order_repo.get_by_id(str(order_id))

    # ------------------------------------------------------------------
    # Payment outcomes
    # ------------------------------------------------------------------

    def get_by_payment_reference(self, reference: str) -> Optional[Order]:
        return self._order_repo.get_by_payment_reference(reference)

    @transaction.atomic
    def mark_paid(self, order_id: str) -> Order:
        order = self._locked(order_id)
        if order.payment_status != PaymentStatus.SUCCEEDED:
            order.payment_status = PaymentStatus.SUCCEEDED
            self._order_repo.save(order)
            logger.info("order.payment_succeeded", order_id=str(order_id))
        return order

    @transaction.atomic
    def mark_payment_failed(self, order_id: str, reason: str = "Payment failed") -> Order:
        """Flag the payment as failed and cancel the order when still possible."""
        order = self._locked(order_id)
        order.payment_status = PaymentStatus.FAILED
        log = logger.bind(order_id=str(order_id), status=order.status)

        if order.can_transition_to(OrderStatus.CANCELLED):
            stock_restored = order.status in PRE_SHIPMENT_STATES
            if stock_restored:
                self._restore_stock(order)
            order.cancellation_reason = reason
            order.add_domain_event(
                OrderCancelled(aggregate_id=order.id, reason=reason, stock_restored=stock_restored)
            )
            self._apply_status(order, OrderStatus.CANCELLED, reason, actor=None)
            log.warning("order.payment_failed_cancelled")
        else:
            self._order_repo.save(order)
            log.warning("order.payment_failed")
        return order

    @transaction.atomic
    def mark_refunded(
        self,
        order_id: str,
        reason: str = "",
        actor: Optional[AbstractBaseUser] = None,
    ) -> Order:
        """Record a refund issued through the payment gateway.

        Money already left the shop, so the status moves to ``refunded``
        from any state.
        """
        order = self._locked(order_id)
        order.payment_status = PaymentStatus.REFUNDED
        order.add_domain_event(
            OrderRefunded(aggregate_id=order.id, payment_method=order.payment_method)
        )
        self._apply_status(
            order,
            OrderStatus.REFUNDED,
            reason or "Refund processed",
            actor,
            process_type=ProcessType.RETURN,
        )
        logger.info("order.refunded", order_id=str(order_id))
        return self._order_repo.get_by_id(str(order_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _check_owner(
        self,
        order: Order,
        actor: Optional[AbstractBaseUser],
        allow_admin: bool,
    ) -> None:
        if actor is None:
            return
        if allow_admin and is_admin(actor):
            return
        if order.customer.user_id != actor.pk:
            raise NotOrderOwner()

    def get_order(self, order_id: str, actor: Optional[AbstractBaseUser] = None) -> Order:
        """Retrieve an order visible to ``actor``.

        Orders of other customers are reported as not found.

        Raises:
            OrderNotFound: missing, deleted or not visible.
        """
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        if actor is not None and not is_admin(actor) and order.owner_user_id != actor.pk:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def get_history(
        self, order_id: str, actor: Optional[AbstractBaseUser] = None
    ) -> List[OrderStatusHistory]:
        order = self.get_order(order_id, actor)
        return self._order_repo.list_history(order.id)

    @staticmethod
    def split_history(order: Order) -> Dict[str, List[OrderStatusHistory]]:
        entries = sorted(order.status_history.all(), key=lambda h: h.created_at, reverse=True)
        return {
            "status_history": [h for h in entries if h.process_type == ProcessType.ORDER],
            "return_history": [h for h in entries if h.process_type == ProcessType.RETURN],
        }

    def _query(self, query: OrderQueryDTO, sort_fields: Dict[str, str], **extra: Any):
        filters = {
            "status": query.status,
            "date_from": query.date_from,
            "date_to": query.date_to,
            "search": query.search,
            **extra,
        }
        queryset = self._order_repo.list({k: v for k, v in filters.items() if v not in (None, "")})
        field = sort_fields.get(query.sort_by, "created_at")
        prefix = "" if query.sort_order.lower() == "asc" else "-"
        return queryset.order_by(f"{prefix}{field}", f"{prefix}id")

    def list_for_customer(self, customer: Customer, query: OrderQueryDTO):
        return self._query(query, SORT_FIELDS, customer=str(customer.id))

    def list_all(self, query: OrderQueryDTO) -> Dict[str, Any]:
        """Admin listing sliced by ``limit``/``offset``."""
        queryset = self._query(query, ADMIN_SORT_FIELDS, customer_email=query.customer_email)
        total = queryset.count()
        items = list(queryset[query.offset:query.offset + query.limit])
        return {
            "items": items,
            "total": total,
            "limit": query.limit,
            "offset": query.offset,
            "has_more": query.offset + query.limit < total,
        }

    def stats(self) -> Dict[str, Any]:
        since = timezone.now() - timedelta(days=7)
        return self._order_repo.status_stats(REVENUE_STATES, since)


def build_order_service() -> OrderService:
    """Wire ``OrderService`` with the Django repositories."""
    from modules.accounts.repositories.django_repository import CustomerDjangoRepository
    from modules.marketing.repositories.django_repository import DiscountDjangoRepository
    from modules.marketing.services import DiscountService
    from modules.orders.repositories.django_repository import OrderDjangoRepository
    from modules.products.repositories.django_repository import ProductDjangoRepository

    return OrderService(
        order_repository=OrderDjangoRepository(),
        customer_repository=CustomerDjangoRepository(),
        product_repository=ProductDjangoRepository(),
        discount_service=DiscountService(DiscountDjangoRepository()),
    )
