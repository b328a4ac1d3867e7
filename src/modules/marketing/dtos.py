"""Marketing DTOs for the Service Layer (pydantic v2, frozen)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from modules.marketing.constants import (
    CAMPAIGN_NAME_MAX_LENGTH,
    CAMPAIGN_SUBJECT_MAX_LENGTH,
    DISCOUNT_CODE_MAX_LENGTH,
    DISCOUNT_CODE_MIN_LENGTH,
    DiscountStatus,
    DiscountType,
    RuleType,
    TargetAudience,
    TemplateCategory,
)

# ---------------------------------------------------------------------------
# Campaigns
# ---------------------------------------------------------------------------


class CampaignDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=CAMPAIGN_NAME_MAX_LENGTH)
    subject: str = Field(min_length=1, max_length=CAMPAIGN_SUBJECT_MAX_LENGTH)
    content: str = Field(min_length=1)
    target_audience: TargetAudience = TargetAudience.ALL
    scheduled_for: Optional[datetime] = None


class UpdateCampaignDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=CAMPAIGN_NAME_MAX_LENGTH)
    subject: Optional[str] = Field(
        default=None, min_length=1, max_length=CAMPAIGN_SUBJECT_MAX_LENGTH
    )
    content: Optional[str] = Field(default=None, min_length=1)
    target_audience: Optional[TargetAudience] = None
    scheduled_for: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------


def _normalize_code(value: str) -> str:
    return value.strip().upper() if isinstance(value, str) else value


class DiscountCodeDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    code: str = Field(min_length=DISCOUNT_CODE_MIN_LENGTH, max_length=DISCOUNT_CODE_MAX_LENGTH)
    discount_type: DiscountType
    value: Decimal = Field(ge=0)
    min_order_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    max_uses: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    @field_validator("code", mode="before")
    @classmethod
    def uppercase_code(cls, v: str) -> str:
        return _normalize_code(v)


class UpdateDiscountCodeDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    discount_type: Optional[DiscountType] = None
    value: Optional[Decimal] = Field(default=None, ge=0)
    min_order_amount: Optional[Decimal] = Field(default=None, ge=0)
    max_uses: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    status: Optional[DiscountStatus] = None


class ValidateDiscountDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    code: str = Field(min_length=1)
    order_amount: Decimal = Field(ge=0)

    @field_validator("code", mode="before")
    @classmethod
    def uppercase_code(cls, v: str) -> str:
        return _normalize_code(v)


# ---------------------------------------------------------------------------
# Automation and templates
# ---------------------------------------------------------------------------


class AutomationRuleDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    rule_type: RuleType
    trigger_config: Dict[str, Any] = Field(default_factory=dict)
    email_template_id: Optional[UUID] = None
    is_active: bool = True


class UpdateAutomationRuleDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    rule_type: Optional[RuleType] = None
    trigger_config: Optional[Dict[str, Any]] = None
    email_template_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class EmailTemplateDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    subject: str = Field(min_length=1, max_length=CAMPAIGN_SUBJECT_MAX_LENGTH)
    content: str = Field(min_length=1)
    category: TemplateCategory = TemplateCategory.PROMOTIONAL


class UpdateEmailTemplateDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    subject: Optional[str] = Field(
        default=None, min_length=1, max_length=CAMPAIGN_SUBJECT_MAX_LENGTH
    )
    content: Optional[str] = Field(default=None, min_length=1)
    category: Optional[TemplateCategory] = None


class EmailSignupDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    email: EmailStr
    source: str = "website"

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower() if isinstance(v, str) else v


class UnsubscribeDTO(BaseModel):
    """Unsubscribe request from the link in a campaign email."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    token: UUID
    reason: str = Field(default="", max_length=255)
