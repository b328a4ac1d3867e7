"""Order domain constants.

Defines status choices and the valid status transitions of the order
state machine.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    RETURN_REQUESTED = "return_requested", "Return requested"
    RETURNED = "returned", "Returned"
    REFUNDED = "refunded", "Refunded"


class PaymentMethod(models.TextChoices):
    STRIPE = "stripe", "Stripe"
    PAYPAL = "paypal", "PayPal"
    MANUAL = "manual", "Manual"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class ProcessType(models.TextChoices):
    ORDER = "order", "Order"
    RETURN = "return", "Return"


# PROCESSING is a legacy state kept for orders created before it was retired.
VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.RETURN_REQUESTED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.RETURN_REQUESTED: {OrderStatus.RETURNED, OrderStatus.CANCELLED},
    OrderStatus.REFUNDED: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.REFUNDED}

# Goods have not left the warehouse; cancelling puts the stock back.
PRE_SHIPMENT_STATES: set[str] = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
}
CUSTOMER_CANCELLABLE_STATES = PRE_SHIPMENT_STATES

UNMODIFIABLE_STATES: set[str] = {
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
}

RETURN_PROCESS_STATES: set[str] = {
    OrderStatus.RETURN_REQUESTED,
    OrderStatus.RETURNED,
    OrderStatus.REFUNDED,
}

REVENUE_STATES: set[str] = {
    OrderStatus.DELIVERED,
    OrderStatus.SHIPPED,
    OrderStatus.PROCESSING,
}

SORT_FIELDS: dict[str, str] = {
    "created_at": "created_at",
    "createdAt": "created_at",
    "total": "total_amount",
    "total_amount": "total_amount",
    "status": "status",
}
ADMIN_SORT_FIELDS: dict[str, str] = {
    **SORT_FIELDS,
    "email": "customer__email",
    "first_name": "customer__first_name",
    "firstName": "customer__first_name",
    "last_name": "customer__last_name",
    "lastName": "customer__last_name",
}

ADMIN_LIST_DEFAULT_LIMIT = 50
ADMIN_LIST_MAX_LIMIT = 100

ORDER_NUMBER_MAX_RETRIES = 5

DEFAULT_CANCELLATION_REASON = "Cancelled by customer"

SHIPPING_LABEL_DEFAULTS = {
    "weight": "1.5",
    "dimensions": "8x6x4",
    "service_level": "Standard Shipping",
}
