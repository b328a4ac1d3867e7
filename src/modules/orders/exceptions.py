"""Order domain exceptions.

Raised by the Service Layer when business rules are violated and rendered
by the API exception handler with the status each class declares.
"""

from __future__ import annotations

from rest_framework import status

from modules.core.exceptions import DomainError, ForbiddenError, NotFoundError


class OrderNotFound(NotFoundError):
    """The requested order does not exist or is not visible to the caller."""

    code = "order_not_found"
    default_detail = "Order not found."


class InvalidOrderStatus(DomainError):
    """An invalid status transition was attempted."""

    code = "invalid_status_transition"
    default_detail = "Invalid status transition."


class OrderNotCancellable(InvalidOrderStatus):
    code = "order_not_cancellable"
    default_detail = "Order cannot be cancelled in its current status."


class ReturnNotAllowed(InvalidOrderStatus):
    code = "return_not_allowed"
    default_detail = "Cannot request return for this order status."


class OrderNotModifiable(InvalidOrderStatus):
    code = "order_not_modifiable"
    default_detail = "Order cannot be modified in its current status."


class InactiveProduct(DomainError):
    """A product referenced by an order item is inactive."""

    code = "inactive_product"
    default_detail = "Product is not available for sale."


class InactiveCustomer(DomainError):
    code = "inactive_customer"
    default_detail = "Customer account is inactive."


class NotOrderOwner(ForbiddenError):
    code = "not_order_owner"
    default_detail = "You can only manage your own orders."


class PaymentAmountMismatch(DomainError):
    """The amount collected by the payment provider differs from the order total."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "payment_amount_mismatch"
    default_detail = "Amount paid does not match the order total."
