"""Email campaigns, discount codes, automation rules and signups.

Business rules implemented:
- Discount codes are unique and stored uppercase.
- ``max_uses`` of ``None`` means unlimited redemptions.
- Percentage discounts never exceed the order amount.
- Signup emails are unique.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.marketing.constants import (
    CAMPAIGN_NAME_MAX_LENGTH,
    CAMPAIGN_SUBJECT_MAX_LENGTH,
    DISCOUNT_CODE_MAX_LENGTH,
    CampaignStatus,
    DiscountStatus,
    DiscountType,
    RuleType,
    TargetAudience,
    TemplateCategory,
)

_CENT = Decimal("0.01")


def _rate(part: int, whole: int) -> float:
    return round(part / whole, 4) if whole else 0.0


class EmailTemplate(BaseModel):
    name = models.CharField(max_length=100)
    subject = models.CharField(max_length=CAMPAIGN_SUBJECT_MAX_LENGTH)
    content = models.TextField()
    category = models.CharField(
        max_length=20,
        choices=TemplateCategory.choices,
        default=TemplateCategory.PROMOTIONAL,
    )

    class Meta:
        db_table = "email_templates"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.name


class Campaign(BaseModel):
    """Bulk email sent to one audience segment."""

    name = models.CharField(max_length=CAMPAIGN_NAME_MAX_LENGTH)
    subject = models.CharField(max_length=CAMPAIGN_SUBJECT_MAX_LENGTH)
    content = models.TextField()
    target_audience = models.CharField(
        max_length=20,
        choices=TargetAudience.choices,
        default=TargetAudience.ALL,
    )
    status = models.CharField(
        max_length=20,
        choices=CampaignStatus.choices,
        default=CampaignStatus.DRAFT,
    )
    scheduled_for = models.DateTimeField(null=True, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    sent_count = models.PositiveIntegerField(default=0)
    open_count = models.PositiveIntegerField(default=0)
    click_count = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "email_campaigns"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "scheduled_for"], name="campaign_status_sched_idx"),
        ]

    @property
    def open_rate(self) -> float:
        return _rate(self.open_count, self.sent_count)

    @property
    def click_rate(self) -> float:
        return _rate(self.click_count, self.sent_count)

    def __str__(self) -> str:
        return f"{self.name} [{self.status}]"


class DiscountCode(BaseModel):
    code = models.CharField(max_length=DISCOUNT_CODE_MAX_LENGTH, unique=True)
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices)
    value = models.DecimalField(
        max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal("0"))]
    )
    min_order_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=DiscountStatus.choices,
        default=DiscountStatus.ACTIVE,
    )

    class Meta:
        db_table = "discount_codes"
        ordering = ["-created_at"]

    def save(self, *args, **kwargs) -> None:
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def rejection_reason(self, order_amount: Decimal, now: datetime) -> Optional[str]:
        """Why the code cannot be applied to ``order_amount``; ``None`` if it can."""
        if self.status != DiscountStatus.ACTIVE:
            return "Discount code is not active."
        if self.valid_from and now < self.valid_from:
            return "Discount code is not valid yet."
        if self.valid_until and now > self.valid_until:
            return "Discount code has expired."
        if self.max_uses is not None and self.used_count >= self.max_uses:
            return "Discount code usage limit reached."
        if order_amount < self.min_order_amount:
            return f"Minimum order amount is ${self.min_order_amount:.2f}."
        return None

    def amount_for(self, order_amount: Decimal) -> Decimal:
        if self.discount_type == DiscountType.PERCENTAGE:
            amount = order_amount * self.value / Decimal("100")
        else:
            amount = self.value
        return min(amount, order_amount).quantize(_CENT, rounding=ROUND_HALF_UP)

    def __str__(self) -> str:
        return self.code


class AutomationRule(BaseModel):
    """Event-triggered email (welcome, low stock ...)."""

    name = models.CharField(max_length=100)
    rule_type = models.CharField(max_length=20, choices=RuleType.choices)
    trigger_config = models.JSONField(default=dict, blank=True)
    email_template = models.ForeignKey(
        "marketing.EmailTemplate",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="rules",
    )
    is_active = models.BooleanField(default=True)
    triggered_count = models.PositiveIntegerField(default=0)
    converted_count = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "automation_rules"
        ordering = ["-created_at"]

    @property
    def conversion_rate(self) -> float:
        return _rate(self.converted_count, self.triggered_count)

    def __str__(self) -> str:
        return f"{self.name} ({self.rule_type})"


class EmailSignup(BaseModel):
    email = models.EmailField(unique=True)
    source = models.CharField(max_length=50, blank=True, default="website")

    class Meta:
        db_table = "email_signups"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.email


class EmailTracking(BaseModel):
    """One campaign email delivered to one recipient.

    The primary key doubles as the token carried by the open pixel, the
    tracked links and the unsubscribe link of that email.
    """

    campaign = models.ForeignKey(Campaign, on_delete=models.CASCADE, related_name="tracking")
    recipient = models.EmailField()
    sent_at = models.DateTimeField()
    opened_at = models.DateTimeField(null=True, blank=True)
    clicked_at = models.DateTimeField(null=True, blank=True)
    unsubscribed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "email_tracking"
        ordering = ["-sent_at"]
        indexes = [
            models.Index(fields=["campaign", "recipient"], name="tracking_campaign_rcpt_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.campaign_id} -> {self.recipient}"


class EmailUnsubscribe(BaseModel):
    """Address that asked to stop receiving campaigns; stored lowercased."""

    email = models.EmailField(unique=True)
    reason = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "email_unsubscribes"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.email
