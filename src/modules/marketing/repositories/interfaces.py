"""Marketing repository interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.marketing.models import (
        AutomationRule,
        Campaign,
        DiscountCode,
        EmailSignup,
        EmailTemplate,
        EmailTracking,
        EmailUnsubscribe,
    )


class IDiscountRepository(IRepository["DiscountCode"]):
    @abstractmethod
    def get_by_code(self, code: str) -> Optional[DiscountCode]:
        """Case-insensitive look-up."""

    @abstractmethod
    def get_by_code_for_update(self, code: str) -> Optional[DiscountCode]:
        """Look-up with a row lock, used when redeeming."""

    @abstractmethod
    def active_count(self) -> int:
        """Number of codes with status ``active``."""


class ICampaignRepository(IRepository["Campaign"]):
    @abstractmethod
    def due_scheduled(self, now: datetime) -> List[Campaign]:
        """Scheduled campaigns whose ``scheduled_for`` has passed."""

    @abstractmethod
    def audience_emails(self, audience: str, now: datetime) -> List[str]:
        """Distinct recipient emails for a target audience."""

    @abstractmethod
    def totals(self) -> Dict[str, Any]:
        """Campaign counts and summed delivery metrics."""

    # Signups

    @abstractmethod
    def signup_exists(self, email: str) -> bool:
        """Whether the email already subscribed."""

    @abstractmethod
    def add_signup(self, email: str, source: str) -> EmailSignup:
        """Persist a newsletter signup."""

    @abstractmethod
    def list_signups(self) -> "models.QuerySet[EmailSignup]":
        """Signups, newest first."""

    # Delivery tracking

    @abstractmethod
    def record_delivery(
        self, campaign: Campaign, recipient: str, token: UUID, sent_at: datetime
    ) -> EmailTracking:
        """Persist the tracking row of one delivered email under ``token``."""

    @abstractmethod
    def get_tracking(self, token: str) -> Optional[EmailTracking]:
        """Tracking row by token; ``None`` for unknown or malformed tokens."""

    @abstractmethod
    def mark_opened(self, tracking: EmailTracking, now: datetime) -> bool:
        """Record the first open and count it on the campaign."""

    @abstractmethod
    def mark_clicked(self, tracking: EmailTracking, now: datetime) -> bool:
        """Record the first click and count it on the campaign."""

    @abstractmethod
    def add_unsubscribe(
        self, tracking: EmailTracking, reason: str, now: datetime
    ) -> EmailUnsubscribe:
        """Add the recipient to the unsubscribe list (idempotent)."""

    @abstractmethod
    def unsubscribed_count(self, campaign: Campaign) -> int:
        """Recipients of the campaign who unsubscribed from it."""


class IAutomationRepository(ABC):
    @abstractmethod
    def list_rules(self) -> "models.QuerySet[AutomationRule]":
        """Rules, newest first."""

    @abstractmethod
    def get_rule(self, id: str) -> Optional[AutomationRule]:
        """Retrieve a rule by primary key."""

    @abstractmethod
    def active_rules(self, rule_type: str) -> List[AutomationRule]:
        """Active rules of one type."""

    @abstractmethod
    def save_rule(self, rule: AutomationRule) -> AutomationRule:
        """Persist a rule."""

    @abstractmethod
    def delete_rule(self, rule: AutomationRule) -> None:
        """Remove a rule."""

    @abstractmethod
    def increment_triggered(self, rule: AutomationRule) -> None:
        """Atomically bump ``triggered_count``."""

    @abstractmethod
    def list_templates(self, category: Optional[str] = None) -> "models.QuerySet[EmailTemplate]":
        """Templates, optionally of one category."""

    @abstractmethod
    def get_template(self, id: str) -> Optional[EmailTemplate]:
        """Retrieve a template by primary key."""

    @abstractmethod
    def save_template(self, template: EmailTemplate) -> EmailTemplate:
        """Persist a template."""

    @abstractmethod
    def delete_template(self, template: EmailTemplate) -> None:
        """Remove a template."""
