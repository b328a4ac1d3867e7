"""Event handlers for Orders domain events."""

from __future__ import annotations

import structlog
from django.conf import settings

from modules.core.notifications import send_email
from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderStatusChanged,
    ReturnRequested,
)
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        logger.info(
            "order.event.created",
            order_id=str(event.aggregate_id),
            order_number=event.order_number,
            total_amount=event.total_amount,
        )


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        logger.info(
            "order.event.cancelled",
            order_id=str(event.aggregate_id),
            stock_restored=event.stock_restored,
        )


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        logger.info(
            "order.event.status_changed",
            order_id=str(event.aggregate_id),
            old_status=event.old_status,
            new_status=event.new_status,
        )


class ReturnRequestedHandler(IEventHandler[ReturnRequested]):
    """Alerts the support mailbox so a return gets picked up."""

    def handle(self, event: ReturnRequested) -> None:
        send_email(
            settings.SUPPORT_EMAIL,
            f"Return requested for order {event.aggregate_id}",
            f"A customer requested a return.\n\nOrder: {event.aggregate_id}\n"
            f"Reason: {event.reason or '-'}\n",
        )
        logger.info("order.event.return_requested", order_id=str(event.aggregate_id))


order_created_handler = OrderCreatedHandler()
order_cancelled_handler = OrderCancelledHandler()
order_status_changed_handler = OrderStatusChangedHandler()
return_requested_handler = ReturnRequestedHandler()
