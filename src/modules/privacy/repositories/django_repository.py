from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.forms.models import model_to_dict
from django.utils import timezone

from modules.accounts.models import Address, Customer
from modules.marketing.models import EmailSignup, EmailTracking
from modules.orders.models import Order
from modules.privacy.constants import (
    ERASED_EMAIL,
    ERASED_FIRST_NAME,
    ERASED_LAST_NAME,
    ERASED_SHIPPING_INFO,
    RequestStatus,
)
from modules.privacy.models import DataRightsRequest, PrivacySettings
from modules.privacy.repositories.interfaces import IPrivacyRepository
from modules.products.models import Review
from modules.support.models import SupportTicket

logger = structlog.get_logger(__name__)

_SETTINGS_FIELDS = ["marketing_emails", "analytics_tracking", "third_party_sharing", "data_retention"]


class PrivacyDjangoRepository(IPrivacyRepository):
    def get_by_id(self, id: str) -> Optional[DataRightsRequest]:
        queryset = DataRightsRequest.objects.select_related("customer", "processed_by")
        try:
            return queryset.filter(id=id).first()
        except (ValueError, ValidationError):
            return queryset.filter(reference=id).first()

    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[DataRightsRequest]":
        queryset = DataRightsRequest.objects.select_related("customer", "processed_by")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset.order_by("-created_at")

    def list_for_subject(
        self, customer_id: Any, email: str
    ) -> "models.QuerySet[DataRightsRequest]":
        return self.list().filter(models.Q(customer_id=customer_id) | models.Q(email__iexact=email))

    def save(self, entity: DataRightsRequest) -> DataRightsRequest:
        entity.save()
        return entity

    def delete(self, id: str) -> bool:
        deleted, _ = DataRightsRequest.objects.filter(id=id).delete()
        return bool(deleted)

    def get_customer_by_email(self, email: str) -> Optional[Customer]:
        return (
            Customer.objects.alive()
            .select_related("user")
            .filter(email__iexact=email)
            .first()
        )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self, customer: Customer) -> PrivacySettings:
        settings, _ = PrivacySettings.objects.get_or_create(customer=customer)
        return settings

    def save_settings(self, settings: PrivacySettings) -> PrivacySettings:
        settings.save()
        return settings

    # ------------------------------------------------------------------
    # Export / erasure
    # ------------------------------------------------------------------

    def export_customer_data(self, customer: Customer) -> Dict[str, Any]:
        orders = (
            Order.objects.filter(customer=customer)
            .prefetch_related("items__product")
            .order_by("-created_at")
        )
        settings = PrivacySettings.objects.filter(customer=customer).first()
        return {
            "personal_info": {
                "id": str(customer.id),
                "email": customer.email,
                "first_name": customer.first_name,
                "last_name": customer.last_name,
                "phone": customer.phone,
                "email_verified": customer.email_verified,
                "created_at": customer.created_at,
            },
            "orders": [
                {
                    "id": str(order.id),
                    "order_number": order.order_number,
                    "status": order.status,
                    "total_amount": order.total_amount,
                    "shipping_info": order.shipping_info,
                    "created_at": order.created_at,
                    "items": [
                        {
                            "product": item.product.name,
                            "quantity": item.quantity,
                            "unit_price": item.unit_price,
                        }
                        for item in order.items.all()
                    ],
                }
                for order in orders
            ],
            "addresses": list(
                Address.objects.filter(customer=customer).values(
                    "label", "name", "line1", "line2", "city", "state", "zip_code", "country", "phone"
                )
            ),
            "reviews": list(
                Review.objects.filter(customer=customer).values(
                    "product__name", "rating", "title", "comment", "created_at"
                )
            ),
            "support_tickets": list(
                SupportTicket.objects.filter(
                    models.Q(customer=customer) | models.Q(email__iexact=customer.email)
                ).values("reference", "subject", "message", "status", "created_at")
            ),
            "privacy_settings": model_to_dict(settings, fields=_SETTINGS_FIELDS) if settings else None,
            "data_rights_requests": list(
                self.list_for_subject(customer.id, customer.email).values(
                    "reference", "request_type", "status", "created_at"
                )
            ),
            "exported_at": timezone.now(),
        }

    @transaction.atomic
    def anonymize_customer(self, customer: Customer) -> None:
        original_email = customer.email
        erased_email = ERASED_EMAIL.format(id=customer.id)

        user = customer.user
        user.username = erased_email
        user.email = erased_email
        user.first_name = ERASED_FIRST_NAME
        user.last_name = ERASED_LAST_NAME
        user.is_active = False
        user.set_unusable_password()
        user.save()

        customer.email = erased_email
        customer.first_name = ERASED_FIRST_NAME
        customer.last_name = ERASED_LAST_NAME
        customer.phone = ""
        customer.is_active = False
        customer.verification_token = None
        customer.reset_token = None
        customer.anonymized_at = timezone.now()
        customer.save()

        Order.objects.filter(customer=customer).update(shipping_info=ERASED_SHIPPING_INFO)
        Address.objects.filter(customer=customer).delete()
        EmailSignup.objects.filter(email__iexact=original_email).delete()
        EmailTracking.objects.filter(recipient__iexact=original_email).delete()

        settings = self.get_settings(customer)
        settings.withdraw_all()
        settings.save()
        logger.info("privacy.customer_anonymized", customer_id=str(customer.id))

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def stats(self, stale_before: datetime) -> Dict[str, Any]:
        queryset = DataRightsRequest.objects.all()
        by_status = {
            row["status"]: row["count"]
            for row in queryset.values("status").annotate(count=models.Count("id"))
        }
        by_type = {
            row["request_type"]: row["count"]
            for row in queryset.values("request_type").annotate(count=models.Count("id"))
        }
        durations = [
            processed_at - created_at
            for created_at, processed_at in queryset.filter(
                status=RequestStatus.COMPLETED, processed_at__isnull=False
            ).values_list("created_at", "processed_at")
        ]
        average_days = (
            round(sum(d.total_seconds() for d in durations) / len(durations) / 86400, 1)
            if durations
            else 0
        )
        return {
            "total": queryset.count(),
            "by_status": by_status,
            "by_type": by_type,
            "overdue_pending": queryset.filter(
                status=RequestStatus.PENDING, created_at__lt=stale_before
            ).count(),
            "average_completion_days": average_days,
        }
