"""Django ORM implementation of the Customer repository."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models.functions import Coalesce

from modules.accounts.models import Address, Customer
from modules.accounts.repositories.interfaces import ICustomerRepository
from modules.core.outbox import record_domain_events

logger = structlog.get_logger(__name__)


class CustomerDjangoRepository(ICustomerRepository):
    def get_by_id(self, id: str) -> Optional[Customer]:
        try:
            return Customer.objects.alive().select_related("user").filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> "models.QuerySet[Customer]":
        queryset = (
            Customer.objects.alive()
            .select_related("user")
            .annotate(
                order_count=models.Count("orders", distinct=True),
                total_spent=Coalesce(
                    models.Sum("orders__total_amount"),
                    models.Value(Decimal("0.00")),
                    output_field=models.DecimalField(max_digits=12, decimal_places=2),
                ),
            )
        )
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    @transaction.atomic
    def save(self, entity: Customer) -> Customer:
        entity.save()
        event_count = record_domain_events(entity, topic="accounts")
        logger.info("customer.saved", customer_id=str(entity.id), event_count=event_count)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        customer = self.get_by_id(id)
        if not customer:
            return False
        customer.delete()
        logger.info("customer.soft_deleted", customer_id=str(id))
        return True

    # ------------------------------------------------------------------
    # Look-ups
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> Optional[Customer]:
        return Customer.objects.select_related("user").filter(email__iexact=email).first()

    def get_by_user_id(self, user_id: int) -> Optional[Customer]:
        return Customer.objects.alive().select_related("user").filter(user_id=user_id).first()

    def get_by_verification_token(self, token: str) -> Optional[Customer]:
        if not token:
            return None
        return Customer.objects.alive().filter(verification_token=token).first()

    def get_by_reset_token(self, token: str) -> Optional[Customer]:
        if not token:
            return None
        return Customer.objects.alive().select_related("user").filter(reset_token=token).first()

    def purchase_stats(self, customer_id: str) -> Dict[str, Any]:
        from modules.orders.models import Order

        return Order.objects.alive().filter(customer_id=customer_id).aggregate(
            order_count=models.Count("id"),
            total_spent=Coalesce(
                models.Sum("total_amount"),
                models.Value(Decimal("0.00")),
                output_field=models.DecimalField(max_digits=12, decimal_places=2),
            ),
            last_order_at=models.Max("created_at"),
        )

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def list_addresses(self, customer_id: str) -> "models.QuerySet[Address]":
        return Address.objects.filter(customer_id=customer_id)

    def get_address(self, customer_id: str, address_id: str) -> Optional[Address]:
        try:
            return Address.objects.filter(customer_id=customer_id, id=address_id).first()
        except (ValueError, ValidationError):
            return None

    @transaction.atomic
    def save_address(self, address: Address) -> Address:
        siblings = Address.objects.select_for_update().filter(customer_id=address.customer_id)
        if not siblings.exclude(id=address.id).exists():
            address.is_default = True
        if address.is_default:
            siblings.exclude(id=address.id).filter(is_default=True).update(is_default=False)
        address.save()
        logger.info(
            "address.saved",
            address_id=str(address.id),
            customer_id=str(address.customer_id),
            is_default=address.is_default,
        )
        return address

    @transaction.atomic
    def delete_address(self, address: Address) -> None:
        was_default = address.is_default
        customer_id = address.customer_id
        address.delete()
        if was_default:
            replacement = Address.objects.filter(customer_id=customer_id).order_by("-created_at").first()
            if replacement:
                replacement.is_default = True
                replacement.save(update_fields=["is_default", "updated_at"])
        logger.info("address.deleted", customer_id=str(customer_id), was_default=was_default)
