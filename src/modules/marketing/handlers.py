"""Automation triggers fed by other modules' domain events."""

from __future__ import annotations

import structlog
from django.conf import settings

from modules.accounts.events import CustomerRegistered
from modules.marketing.constants import RuleType
from modules.marketing.repositories.django_repository import AutomationDjangoRepository
from modules.marketing.services import AutomationService
from modules.products.events import ProductLowStock
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class WelcomeEmailHandler(IEventHandler[CustomerRegistered]):
    def handle(self, event: CustomerRegistered) -> None:
        AutomationService(AutomationDjangoRepository()).trigger(
            RuleType.WELCOME,
            event.email,
            {"first_name": event.first_name or "there", "store_name": settings.STORE_NAME},
        )


class LowStockAlertHandler(IEventHandler[ProductLowStock]):
    """Notifies the store team through the ``low_stock`` rules."""

    def handle(self, event: ProductLowStock) -> None:
        logger.warning(
            "product.low_stock",
            product_id=str(event.aggregate_id),
            sku=event.sku,
            stock_quantity=event.stock_quantity,
        )
        AutomationService(AutomationDjangoRepository()).trigger(
            RuleType.LOW_STOCK,
            settings.SUPPORT_EMAIL,
            {
                "product_name": event.name,
                "sku": event.sku,
                "stock_quantity": event.stock_quantity,
                "threshold": event.threshold,
            },
        )


welcome_email_handler = WelcomeEmailHandler()
low_stock_alert_handler = LowStockAlertHandler()
