"""Data-subject requests and per-customer privacy preferences."""

from __future__ import annotations

import secrets
from typing import Any

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.privacy.constants import DataRetention, RequestStatus, RequestType


class DataRightsRequest(BaseModel):
    """A GDPR request; ``email`` identifies the subject when no account is linked."""

    reference = models.CharField(max_length=32, unique=True, editable=False)
    customer = models.ForeignKey(
        "accounts.Customer",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="data_requests",
    )
    email = models.EmailField(db_index=True)
    request_type = models.CharField(max_length=20, choices=RequestType.choices)
    status = models.CharField(
        max_length=20, choices=RequestStatus.choices, default=RequestStatus.PENDING
    )
    description = models.TextField(blank=True, default="")
    admin_response = models.TextField(blank=True, default="")
    response_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    processed_at = models.DateTimeField(null=True, blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "data_rights_requests"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="idx_dr_status_created"),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.reference:
            self.reference = f"DR-{timezone.now():%Y%m%d%H%M%S}-{secrets.token_hex(4).upper()}"
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.reference} {self.request_type} ({self.status})"


class PrivacySettings(BaseModel):
    customer = models.OneToOneField(
        "accounts.Customer",
        on_delete=models.CASCADE,
        related_name="privacy_settings",
    )
    marketing_emails = models.BooleanField(default=True)
    analytics_tracking = models.BooleanField(default=True)
    third_party_sharing = models.BooleanField(default=False)
    data_retention = models.CharField(
        max_length=20, choices=DataRetention.choices, default=DataRetention.ONE_YEAR
    )

    class Meta:
        db_table = "privacy_settings"

    def withdraw_all(self) -> None:
        self.marketing_emails = False
        self.analytics_tracking = False
        self.third_party_sharing = False
