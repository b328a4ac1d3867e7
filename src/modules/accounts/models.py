"""Customer profile and address book.

Business rules implemented:
- Email is unique across customers and mirrors ``auth.User.username``.
- Login requires a verified email (enforced at service layer).
- Verification and password-reset tokens are single use and expire.
- A customer has at most one default address (partial unique constraint).
- Erasure anonymises the profile in place; orders keep their FK.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.db import models
from django.utils import timezone

from modules.accounts.constants import TOKEN_BYTES
from modules.core.models import BaseModel, SoftDeleteModel
from shared.domain.events import DomainEventMixin


class Customer(DomainEventMixin, SoftDeleteModel):
    """Storefront account attached one-to-one to ``auth.User``.

    Authentication (password hashing, ``is_staff`` for admins) stays on the
    Django user; everything the shop needs about the person lives here.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="customer",
    )
    email = models.EmailField(max_length=254, unique=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True, default="")
    phone = models.CharField(max_length=30, blank=True, default="")
    is_active = models.BooleanField(default=True)

    email_verified = models.BooleanField(default=False)
    verification_token = models.CharField(  # noqa: DJ01
        max_length=64, unique=True, null=True, blank=True
    )
    verification_expires_at = models.DateTimeField(null=True, blank=True)
    reset_token = models.CharField(  # noqa: DJ01
        max_length=64, unique=True, null=True, blank=True
    )
    reset_expires_at = models.DateTimeField(null=True, blank=True)
    anonymized_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "customers"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["-created_at"], name="customers_created_idx"),
            models.Index(fields=["is_active"], name="customers_active_idx"),
        ]

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def owner_user_id(self) -> int:
        return self.user_id

    @property
    def is_anonymized(self) -> bool:
        return self.anonymized_at is not None

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def issue_verification_token(self, hours: int) -> str:
        self.verification_token = secrets.token_urlsafe(TOKEN_BYTES)
        self.verification_expires_at = timezone.now() + timedelta(hours=hours)
        return self.verification_token

    def issue_reset_token(self, hours: int) -> str:
        self.reset_token = secrets.token_urlsafe(TOKEN_BYTES)
        self.reset_expires_at = timezone.now() + timedelta(hours=hours)
        return self.reset_token

    def mark_email_verified(self) -> None:
        self.email_verified = True
        self.verification_token = None
        self.verification_expires_at = None

    @staticmethod
    def token_is_live(expires_at: Optional[datetime]) -> bool:
        return expires_at is not None and expires_at > timezone.now()

    def __str__(self) -> str:
        return f"{self.full_name} <{self.email}>"


class Address(BaseModel):
    """Saved shipping address."""

    customer = models.ForeignKey(
        "accounts.Customer",
        on_delete=models.CASCADE,
        related_name="addresses",
    )
    label = models.CharField(max_length=50, blank=True, default="")
    name = models.CharField(max_length=200)
    line1 = models.CharField(max_length=255)
    line2 = models.CharField(max_length=255, blank=True, default="")
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100, blank=True, default="")
    zip_code = models.CharField(max_length=20)
    country = models.CharField(max_length=100, default="US")
    phone = models.CharField(max_length=30, blank=True, default="")
    is_default = models.BooleanField(default=False)

    class Meta:
        db_table = "addresses"
        ordering = ["-is_default", "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["customer"],
                condition=models.Q(is_default=True),
                name="addresses_single_default",
            ),
        ]

    @property
    def owner_user_id(self) -> int:
        return self.customer.user_id

    def as_shipping_info(self) -> dict:
        return {
            "name": self.name,
            "address": " ".join(part for part in (self.line1, self.line2) if part),
            "city": self.city,
            "state": self.state,
            "zip": self.zip_code,
            "country": self.country,
            "phone": self.phone,
        }

    def __str__(self) -> str:
        return f"{self.name}, {self.line1}, {self.city}"
