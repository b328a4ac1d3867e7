"""Order, OrderItem, and OrderStatusHistory models.

Business rules implemented:
- Invalid status transitions rejected (enforced at service layer).
- Each status change generates a history record tagged with its process
  (``order`` or ``return``).
- Idempotency via ``idempotency_key`` unique constraint.
- Order number auto-generated as human-readable identifier.
- Customer FK uses PROTECT to preserve financial history.
- OrderItem snapshots product price at creation time (``unit_price``).
- OrderItem subtotal is always ``quantity * unit_price`` (calculated on save).
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any, Optional

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel, SoftDeleteModel
from modules.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    RETURN_PROCESS_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ProcessType,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


class Order(DomainEventMixin, SoftDeleteModel):
    """Order aggregate root.

    ``order_number`` is a human-readable identifier auto-generated on first
    save (format: ``ORD-YYYYMMDD-XXXXXX``).  The UUIDv7 ``id`` is used for
    all internal references and API lookups.

    ``payment_intent_id`` holds the Stripe PaymentIntent id (``pi_...``) or
    the PayPal order id, depending on ``payment_method``.
    """

    order_number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    customer: models.ForeignKey = models.ForeignKey(
        "accounts.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    total_amount: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    discount_code: models.CharField = models.CharField(
        max_length=20, blank=True, default=""
    )
    discount_amount: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    shipping_info: models.JSONField = models.JSONField(default=dict)
    notes: models.TextField = models.TextField(blank=True, default="")

    payment_method: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.MANUAL,
    )
    payment_intent_id: models.CharField = models.CharField(  # noqa: DJ01
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )
    payment_status: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )

    tracking_number: models.CharField = models.CharField(
        max_length=100, blank=True, default=""
    )
    estimated_delivery: models.DateField = models.DateField(null=True, blank=True)
    actual_delivery: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    cancellation_reason: models.TextField = models.TextField(blank=True, default="")

    modification_history: models.JSONField = models.JSONField(default=list, blank=True)
    notification_sent: models.JSONField = models.JSONField(default=list, blank=True)

    idempotency_key: models.CharField = models.CharField(  # noqa: DJ01
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(fields=["payment_status"], name="orders_payment_status_idx"),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        allowed = VALID_TRANSITIONS.get(self.status, set())
        return new_status in allowed

    @staticmethod
    def process_type_for(status: str) -> str:
        if status in RETURN_PROCESS_STATES:
            return ProcessType.RETURN
        return ProcessType.ORDER

    @property
    def owner_user_id(self) -> int:
        return self.customer.user_id

    # ------------------------------------------------------------------
    # Audit trails kept on the row
    # ------------------------------------------------------------------

    def record_notification(self, status: str, channel: str = "email") -> None:
        self.notification_sent = [
            *(self.notification_sent or []),
            {"status": status, "sentAt": timezone.now().isoformat(), "type": channel},
        ]

    def record_modification(
        self,
        modified_by: str,
        reason: str,
        previous_total: Decimal,
        new_total: Decimal,
        previous_shipping: Optional[dict] = None,
        new_shipping: Optional[dict] = None,
    ) -> None:
        entry = {
            "timestamp": timezone.now().isoformat(),
            "modifiedBy": modified_by,
            "reason": reason,
            "previousTotal": str(previous_total),
            "newTotal": str(new_total),
        }
        if new_shipping is not None:
            entry["previousShipping"] = previous_shipping
            entry["newShipping"] = new_shipping
        self.modification_history = [*(self.modification_history or []), entry]

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for attempt in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item linking an Order to a Product.

    ``unit_price`` is a **snapshot** of the product price at the time of
    purchase; it never changes even if the product price is updated later.
    ``subtotal`` is always ``quantity * unit_price``, recalculated on every save.
    Items are replaced wholesale when an admin modifies the order.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product: models.ForeignKey = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
    )
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        editable=False,
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.unit_price:
            unit_price = getattr(self.product, "price", None)
            if unit_price is None:
                raise ValidationError({"unit_price": "Product price is required."})
            self.unit_price = unit_price
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product} x{self.quantity} (${self.subtotal})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    Inherits ``BaseModel`` (not ``SoftDeleteModel``) because audit records
    are immutable.  ``updated_by`` is nullable: ``None`` means the change
    was performed by the system (webhook, payment failure).
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    reason: models.TextField = models.TextField(blank=True, default="")
    updated_by: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    updated_by_label: models.CharField = models.CharField(
        max_length=254, blank=True, default="system"
    )
    process_type: models.CharField = models.CharField(
        max_length=10,
        choices=ProcessType.choices,
        default=ProcessType.ORDER,
    )

    class Meta:
        db_table = "order_status_history"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["order", "-created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order} : {self.old_status} -> {self.new_status}"
