from django.apps import AppConfig


class MarketingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.marketing"
    label = "marketing"

    def ready(self) -> None:
        from modules.accounts.events import CustomerRegistered
        from modules.marketing.handlers import low_stock_alert_handler, welcome_email_handler
        from modules.products.events import ProductLowStock
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(CustomerRegistered, welcome_email_handler)
        event_bus.subscribe(ProductLowStock, low_stock_alert_handler)
