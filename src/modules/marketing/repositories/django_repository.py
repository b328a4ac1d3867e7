"""Django ORM implementations of the marketing repositories."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import models, transaction

from modules.marketing.constants import (
    INACTIVE_CUSTOMER_DAYS,
    NEW_CUSTOMER_DAYS,
    CampaignStatus,
    DiscountStatus,
    TargetAudience,
)
from modules.marketing.models import (
    AutomationRule,
    Campaign,
    DiscountCode,
    EmailSignup,
    EmailTemplate,
    EmailTracking,
    EmailUnsubscribe,
)
from modules.marketing.repositories.interfaces import (
    IAutomationRepository,
    ICampaignRepository,
    IDiscountRepository,
)

logger = structlog.get_logger(__name__)


def _by_id(queryset: models.QuerySet, id: str):
    try:
        return queryset.filter(id=id).first()
    except (ValueError, ValidationError):
        return None


class DiscountDjangoRepository(IDiscountRepository):
    def get_by_id(self, id: str) -> Optional[DiscountCode]:
        return _by_id(DiscountCode.objects.all(), id)

    def list(self, filters: Optional[Dict[str, Any]] = None) -> "models.QuerySet[DiscountCode]":
        queryset = DiscountCode.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def save(self, entity: DiscountCode) -> DiscountCode:
        entity.save()
        logger.info("discount.saved", discount_id=str(entity.id), code=entity.code)
        return entity

    def delete(self, id: str) -> bool:
        deleted, _ = DiscountCode.objects.filter(id=id).delete()
        return bool(deleted)

    def get_by_code(self, code: str) -> Optional[DiscountCode]:
        return DiscountCode.objects.filter(code=code.strip().upper()).first()

    def get_by_code_for_update(self, code: str) -> Optional[DiscountCode]:
        return DiscountCode.objects.select_for_update().filter(code=code.strip().upper()).first()

    def active_count(self) -> int:
        return DiscountCode.objects.filter(status=DiscountStatus.ACTIVE).count()


class CampaignDjangoRepository(ICampaignRepository):
    def get_by_id(self, id: str) -> Optional[Campaign]:
        return _by_id(Campaign.objects.all(), id)

    def list(self, filters: Optional[Dict[str, Any]] = None) -> "models.QuerySet[Campaign]":
        queryset = Campaign.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def save(self, entity: Campaign) -> Campaign:
        entity.save()
        logger.info("campaign.saved", campaign_id=str(entity.id), status=entity.status)
        return entity

    def delete(self, id: str) -> bool:
        deleted, _ = Campaign.objects.filter(id=id).delete()
        return bool(deleted)

    def due_scheduled(self, now: datetime) -> List[Campaign]:
        return list(
            Campaign.objects.filter(status=CampaignStatus.SCHEDULED, scheduled_for__lte=now)
        )

    def audience_emails(self, audience: str, now: datetime) -> List[str]:
        """Verified, active, non-anonymised customers who did not opt out.

        ``all`` also includes newsletter signups, except those of customers
        who opted out. Unsubscribed addresses are never returned.
        """
        from modules.accounts.models import Customer

        customers = (
            Customer.objects.alive()
            .filter(is_active=True, email_verified=True, anonymized_at__isnull=True)
            .exclude(privacy_settings__marketing_emails=False)
        )
        if audience == TargetAudience.NEW:
            customers = customers.filter(created_at__gte=now - timedelta(days=NEW_CUSTOMER_DAYS))
        elif audience == TargetAudience.RETURNING:
            customers = customers.annotate(
                order_total=models.Count("orders", distinct=True)
            ).filter(order_total__gt=1)
        elif audience == TargetAudience.INACTIVE:
            cutoff = now - timedelta(days=INACTIVE_CUSTOMER_DAYS)
            customers = customers.exclude(orders__created_at__gte=cutoff)

        emails = set(customers.values_list("email", flat=True))
        if audience == TargetAudience.ALL:
            opted_out = Customer.objects.filter(privacy_settings__marketing_emails=False)
            emails.update(
                EmailSignup.objects.exclude(email__in=opted_out.values("email")).values_list(
                    "email", flat=True
                )
            )
        unsubscribed = set(EmailUnsubscribe.objects.values_list("email", flat=True))
        return sorted(email for email in emails if email.lower() not in unsubscribed)

    def totals(self) -> Dict[str, Any]:
        by_status = dict(
            Campaign.objects.order_by()
            .values_list("status")
            .annotate(n=models.Count("id"))
        )
        sums = Campaign.objects.aggregate(
            sent=models.Sum("sent_count"),
            opened=models.Sum("open_count"),
            clicked=models.Sum("click_count"),
        )
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "sent": sums["sent"] or 0,
            "opened": sums["opened"] or 0,
            "clicked": sums["clicked"] or 0,
        }

    def signup_exists(self, email: str) -> bool:
        return EmailSignup.objects.filter(email__iexact=email).exists()

    def add_signup(self, email: str, source: str) -> EmailSignup:
        return EmailSignup.objects.create(email=email, source=source)

    def list_signups(self) -> "models.QuerySet[EmailSignup]":
        return EmailSignup.objects.order_by("-created_at")

    def record_delivery(
        self, campaign: Campaign, recipient: str, token: UUID, sent_at: datetime
    ) -> EmailTracking:
        return EmailTracking.objects.create(
            id=token, campaign=campaign, recipient=recipient, sent_at=sent_at
        )

    def get_tracking(self, token: str) -> Optional[EmailTracking]:
        return _by_id(EmailTracking.objects.all(), token)

    @transaction.atomic
    def mark_opened(self, tracking: EmailTracking, now: datetime) -> bool:
        first = EmailTracking.objects.filter(id=tracking.id, opened_at__isnull=True).update(
            opened_at=now, updated_at=now
        )
        if first:
            Campaign.objects.filter(id=tracking.campaign_id).update(
                open_count=models.F("open_count") + 1
            )
        return bool(first)

    @transaction.atomic
    def mark_clicked(self, tracking: EmailTracking, now: datetime) -> bool:
        # a click implies the email was opened, even with images blocked
        self.mark_opened(tracking, now)
        first = EmailTracking.objects.filter(id=tracking.id, clicked_at__isnull=True).update(
            clicked_at=now, updated_at=now
        )
        if first:
            Campaign.objects.filter(id=tracking.campaign_id).update(
                click_count=models.F("click_count") + 1
            )
        return bool(first)

    @transaction.atomic
    def add_unsubscribe(
        self, tracking: EmailTracking, reason: str, now: datetime
    ) -> EmailUnsubscribe:
        EmailTracking.objects.filter(id=tracking.id, unsubscribed_at__isnull=True).update(
            unsubscribed_at=now, updated_at=now
        )
        entry, _ = EmailUnsubscribe.objects.get_or_create(
            email=tracking.recipient.lower(), defaults={"reason": reason}
        )
        return entry

    def unsubscribed_count(self, campaign: Campaign) -> int:
        return campaign.tracking.filter(unsubscribed_at__isnull=False).count()


class AutomationDjangoRepository(IAutomationRepository):
    def list_rules(self) -> "models.QuerySet[AutomationRule]":
        return AutomationRule.objects.select_related("email_template")

    def get_rule(self, id: str) -> Optional[AutomationRule]:
        return _by_id(AutomationRule.objects.select_related("email_template"), id)

    def active_rules(self, rule_type: str) -> List[AutomationRule]:
        return list(
            AutomationRule.objects.select_related("email_template").filter(
                rule_type=rule_type, is_active=True
            )
        )

    def save_rule(self, rule: AutomationRule) -> AutomationRule:
        rule.save()
        return rule

    def delete_rule(self, rule: AutomationRule) -> None:
        rule.delete()

    @transaction.atomic
    def increment_triggered(self, rule: AutomationRule) -> None:
        AutomationRule.objects.filter(id=rule.id).update(
            triggered_count=models.F("triggered_count") + 1
        )

    def list_templates(self, category: Optional[str] = None) -> "models.QuerySet[EmailTemplate]":
        queryset = EmailTemplate.objects.all()
        if category:
            queryset = queryset.filter(category=category)
        return queryset

    def get_template(self, id: str) -> Optional[EmailTemplate]:
        return _by_id(EmailTemplate.objects.all(), id)

    def save_template(self, template: EmailTemplate) -> EmailTemplate:
        template.save()
        return template

    def delete_template(self, template: EmailTemplate) -> None:
        template.delete()
