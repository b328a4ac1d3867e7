"""Customer emails for the order lifecycle."""

from __future__ import annotations

from django.conf import settings

from modules.core.notifications import send_email, store_signature
from modules.orders.models import Order

_STATUS_MESSAGES = {
    "pending": "We have received your order and will confirm it shortly.",
    "confirmed": "Your order is confirmed and being prepared.",
    "processing": "Your order is being prepared.",
    "shipped": "Good news, your order is on its way!",
    "delivered": "Your order has been delivered. Enjoy your collectibles!",
    "cancelled": "Your order has been cancelled.",
    "return_requested": "We received your return request and will review it shortly.",
    "returned": "We received your returned items.",
    "refunded": "Your refund has been issued.",
}


def _recipient(order: Order) -> str:
    return order.customer.email


def _greeting(order: Order) -> str:
    name = order.customer.first_name or order.customer.email.split("@")[0]
    return f"Hi {name},"


def send_order_confirmation(order: Order) -> bool:
    lines = [
        _greeting(order),
        "",
        f"Thank you for your order {order.order_number}.",
        "",
    ]
    for item in order.items.all():
        lines.append(f"  {item.quantity} x {item.product.name}  ${item.subtotal:.2f}")
    if order.discount_amount:
        lines.append(f"  Discount ({order.discount_code})  -${order.discount_amount:.2f}")
    lines += [
        "",
        f"Total: ${order.total_amount:.2f}",
        f"Track your order: {settings.FRONTEND_URL}/orders/{order.id}",
    ]
    return send_email(
        _recipient(order),
        f"Order Confirmation - {settings.STORE_NAME}",
        "\n".join(lines) + store_signature(),
    )


def send_status_update(order: Order, status: str) -> bool:
    lines = [
        _greeting(order),
        "",
        f"Order {order.order_number} is now: {status.replace('_', ' ')}.",
        _STATUS_MESSAGES.get(status, ""),
    ]
    if order.tracking_number and status == "shipped":
        lines.append(f"Tracking number: {order.tracking_number}")
    if order.cancellation_reason and status == "cancelled":
        lines.append(f"Reason: {order.cancellation_reason}")
    return send_email(
        _recipient(order),
        f"Order {order.order_number} Status Update - {status.replace('_', ' ').title()}",
        "\n".join(lines) + store_signature(),
    )
