"""Marketing service layer (Use Cases).

Business rules enforced here:
- A campaign is ``scheduled`` when created with ``scheduled_for``, else
  ``draft``; completed campaigns are never sent again.
- Sending resolves the audience first and refuses an empty one; delivery
  happens in the ``marketing.send_campaign`` task after commit.
- Discount codes are unique; redemption locks the row and counts the use.
- Signup emails are unique (409 on duplicates).
- Every delivered campaign email gets a tracking token. Its open pixel and
  shop link count the first open and click on the campaign; its unsubscribe
  link removes the address from every later audience.
"""

from __future__ import annotations

from decimal import Decimal
from functools import partial
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

import structlog
import uuid6
from django.conf import settings
from django.db import transaction
from django.urls import reverse
from django.utils import timezone
from django.utils.html import format_html, linebreaks
from django.utils.http import urlencode

from modules.core.notifications import send_email, store_signature
from modules.marketing.constants import (
    LOCKED_CAMPAIGN_STATES,
    CampaignStatus,
)
from modules.marketing.exceptions import (
    AlreadySubscribed,
    CampaignAlreadySent,
    CampaignNotFound,
    DiscountCodeTaken,
    DiscountNotFound,
    EmptyAudience,
    InvalidDiscount,
    RuleNotFound,
    TemplateNotFound,
    TrackingNotFound,
)
from modules.marketing.models import (
    AutomationRule,
    Campaign,
    DiscountCode,
    EmailTemplate,
)

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

    from modules.marketing.dtos import (
        AutomationRuleDTO,
        CampaignDTO,
        DiscountCodeDTO,
        EmailSignupDTO,
        EmailTemplateDTO,
        UnsubscribeDTO,
        UpdateAutomationRuleDTO,
        UpdateCampaignDTO,
        UpdateDiscountCodeDTO,
        UpdateEmailTemplateDTO,
        ValidateDiscountDTO,
    )
    from modules.marketing.models import EmailSignup, EmailTracking, EmailUnsubscribe
    from modules.marketing.repositories.interfaces import (
        IAutomationRepository,
        ICampaignRepository,
        IDiscountRepository,
    )

logger = structlog.get_logger(__name__)


class _SafeContext(dict):
    """Leaves unknown ``{placeholders}`` untouched when rendering."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render(text: str, context: Dict[str, Any]) -> str:
    return text.format_map(_SafeContext(context))


def tracking_links(token: Any) -> Dict[str, str]:
    """Absolute URLs embedded in the campaign email identified by ``token``."""
    api = settings.API_URL.rstrip("/")
    click = reverse("marketing-track-click", kwargs={"token": token})
    return {
        "open_url": api + reverse("marketing-track-open", kwargs={"token": token}),
        "shop_url": f"{api}{click}?{urlencode({'url': settings.FRONTEND_URL})}",
        "unsubscribe_url": (
            f"{settings.FRONTEND_URL.rstrip('/')}/unsubscribe?{urlencode({'token': str(token)})}"
        ),
    }


def campaign_bodies(content: str, email: str, links: Dict[str, str]) -> Tuple[str, str]:
    """Plain-text and HTML bodies of one campaign email.

    ``content`` may use ``{email}``, ``{shop_url}`` and ``{unsubscribe_url}``.
    """
    text = render(content, {"email": email, **links})
    footer = f"\n\nUnsubscribe: {links['unsubscribe_url']}"
    html = linebreaks(text, autoescape=True) + format_html(
        '<p><a href="{}">Visit {}</a> | <a href="{}">Unsubscribe</a></p>'
        '<img src="{}" width="1" height="1" alt="">',
        links["shop_url"],
        settings.STORE_NAME,
        links["unsubscribe_url"],
        links["open_url"],
    )
    return text + footer + store_signature(), html


# ---------------------------------------------------------------------------
# Campaigns
# ---------------------------------------------------------------------------


class CampaignService:
    def __init__(self, repository: ICampaignRepository) -> None:
        self._repo = repository

    def list_campaigns(self):
        return self._repo.list()

    def get_campaign(self, id: str) -> Campaign:
        campaign = self._repo.get_by_id(id)
        if not campaign:
            raise CampaignNotFound()
        return campaign

    def create_campaign(
        self, dto: CampaignDTO, actor: Optional[AbstractBaseUser] = None
    ) -> Campaign:
        campaign = Campaign(
            **dto.model_dump(),
            status=CampaignStatus.SCHEDULED if dto.scheduled_for else CampaignStatus.DRAFT,
            created_by=actor if actor is not None and actor.is_authenticated else None,
        )
        campaign = self._repo.save(campaign)
        logger.info("campaign.created", campaign_id=str(campaign.id), status=campaign.status)
        return campaign

    def update_campaign(self, id: str, dto: UpdateCampaignDTO) -> Campaign:
        campaign = self.get_campaign(id)
        if campaign.status in LOCKED_CAMPAIGN_STATES:
            raise CampaignAlreadySent("Campaign can no longer be edited.")
        for field, value in dto.model_dump(exclude_none=True).items():
            setattr(campaign, field, value)
        if dto.scheduled_for is not None:
            campaign.status = CampaignStatus.SCHEDULED
        return self._repo.save(campaign)

    def delete_campaign(self, id: str) -> None:
        self.get_campaign(id)
        self._repo.delete(id)
        logger.info("campaign.deleted", campaign_id=str(id))

    @transaction.atomic
    def send_campaign(self, id: str) -> Dict[str, Any]:
        """Validate the audience and queue delivery.

        Raises:
            CampaignNotFound: unknown campaign.
            CampaignAlreadySent: campaign is completed or already sending.
            EmptyAudience: nobody matches the target audience.
        """
        from modules.marketing.tasks import send_campaign as send_campaign_task

        campaign = self.get_campaign(id)
        if campaign.status in LOCKED_CAMPAIGN_STATES:
            raise CampaignAlreadySent()

        recipients = self._repo.audience_emails(campaign.target_audience, timezone.now())
        if not recipients:
            raise EmptyAudience()

        campaign.status = CampaignStatus.SENDING
        self._repo.save(campaign)
        transaction.on_commit(partial(send_campaign_task.delay, str(campaign.id)))

        logger.info(
            "campaign.queued",
            campaign_id=str(campaign.id),
            audience=campaign.target_audience,
            recipient_count=len(recipients),
        )
        return {"campaign_id": str(campaign.id), "total_recipients": len(recipients)}

    def deliver(self, id: str) -> Dict[str, int]:
        """Email every recipient; run by the ``marketing.send_campaign`` task."""
        campaign = self.get_campaign(id)
        if campaign.status == CampaignStatus.COMPLETED:
            logger.info("campaign.already_completed", campaign_id=str(id))
            return {"sent": 0, "failed": 0}

        recipients = self._repo.audience_emails(campaign.target_audience, timezone.now())
        sent = failed = 0
        for email in recipients:
            token = uuid6.uuid7()
            body, html = campaign_bodies(campaign.content, email, tracking_links(token))
            if send_email(email, campaign.subject, body, html=html):
                self._repo.record_delivery(campaign, email, token, timezone.now())
                sent += 1
            else:
                failed += 1

        campaign.sent_count += sent
        campaign.sent_at = timezone.now()
        campaign.status = CampaignStatus.COMPLETED
        self._repo.save(campaign)
        logger.info("campaign.delivered", campaign_id=str(id), sent=sent, failed=failed)
        return {"sent": sent, "failed": failed}

    def send_due_campaigns(self) -> int:
        due = self._repo.due_scheduled(timezone.now())
        for campaign in due:
            campaign.status = CampaignStatus.SENDING
            self._repo.save(campaign)
            self.deliver(str(campaign.id))
        return len(due)

    def analytics(self, id: str) -> Dict[str, Any]:
        campaign = self.get_campaign(id)
        return {
            "campaign_id": str(campaign.id),
            "status": campaign.status,
            "sent_count": campaign.sent_count,
            "open_count": campaign.open_count,
            "click_count": campaign.click_count,
            "open_rate": campaign.open_rate,
            "click_rate": campaign.click_rate,
            "unsubscribe_count": self._repo.unsubscribed_count(campaign),
            "sent_at": campaign.sent_at,
        }

    # ------------------------------------------------------------------
    # Tracking and unsubscribe (public links in campaign emails)
    # ------------------------------------------------------------------

    def _tracking(self, token: str) -> EmailTracking:
        tracking = self._repo.get_tracking(token)
        if not tracking:
            raise TrackingNotFound()
        return tracking

    def track_open(self, token: str) -> bool:
        """Count the first open of one email; later opens return ``False``."""
        tracking = self._tracking(token)
        first = self._repo.mark_opened(tracking, timezone.now())
        if first:
            logger.info("campaign.opened", campaign_id=str(tracking.campaign_id))
        return first

    def track_click(self, token: str) -> bool:
        tracking = self._tracking(token)
        first = self._repo.mark_clicked(tracking, timezone.now())
        if first:
            logger.info("campaign.clicked", campaign_id=str(tracking.campaign_id))
        return first

    def unsubscribe(self, dto: UnsubscribeDTO) -> EmailUnsubscribe:
        """Stop campaigns to the recipient of ``dto.token``. Repeating is a no-op.

        Raises:
            TrackingNotFound: the token belongs to no delivered email.
        """
        tracking = self._tracking(str(dto.token))
        entry = self._repo.add_unsubscribe(tracking, dto.reason, timezone.now())
        logger.info("campaign.unsubscribed", campaign_id=str(tracking.campaign_id))
        return entry

    # ------------------------------------------------------------------
    # Signups
    # ------------------------------------------------------------------

    def subscribe(self, dto: EmailSignupDTO) -> EmailSignup:
        if self._repo.signup_exists(dto.email):
            raise AlreadySubscribed()
        signup = self._repo.add_signup(dto.email, dto.source)
        logger.info("signup.created", source=dto.source)
        return signup

    def list_signups(self):
        return self._repo.list_signups()


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------


class DiscountService:
    """Discount code management and checkout redemption."""

    def __init__(self, repository: IDiscountRepository) -> None:
        self._repo = repository

    def list_discounts(self):
        return self._repo.list()

    def get_discount(self, id: str) -> DiscountCode:
        discount = self._repo.get_by_id(id)
        if not discount:
            raise DiscountNotFound()
        return discount

    def create_discount(self, dto: DiscountCodeDTO) -> DiscountCode:
        if self._repo.get_by_code(dto.code):
            raise DiscountCodeTaken()
        discount = self._repo.save(DiscountCode(**dto.model_dump()))
        logger.info("discount.created", code=discount.code)
        return discount

    def update_discount(self, id: str, dto: UpdateDiscountCodeDTO) -> DiscountCode:
        discount = self.get_discount(id)
        for field, value in dto.model_dump(exclude_none=True).items():
            setattr(discount, field, value)
        return self._repo.save(discount)

    def delete_discount(self, id: str) -> None:
        self.get_discount(id)
        self._repo.delete(id)

    def validate(self, dto: ValidateDiscountDTO) -> Dict[str, Any]:
        """Check a code against an order amount without consuming it.

        Raises:
            DiscountNotFound: unknown code.
            InvalidDiscount: inactive, outside its window, used up or below
                the minimum amount.
        """
        discount = self._repo.get_by_code(dto.code)
        if not discount:
            raise DiscountNotFound("Invalid discount code.")
        reason = discount.rejection_reason(dto.order_amount, timezone.now())
        if reason:
            raise InvalidDiscount(reason)

        amount = discount.amount_for(dto.order_amount)
        return {
            "code": discount.code,
            "discount_type": discount.discount_type,
            "value": discount.value,
            "discount_amount": amount,
            "final_amount": dto.order_amount - amount,
        }

    @transaction.atomic
    def redeem(self, code: str, order_amount: Decimal) -> Decimal:
        """Consume one use of ``code``; returns the discount amount.

        Raises the same errors as :meth:`validate`.
        """
        discount = self._repo.get_by_code_for_update(code)
        if not discount:
            raise DiscountNotFound("Invalid discount code.")
        reason = discount.rejection_reason(order_amount, timezone.now())
        if reason:
            raise InvalidDiscount(reason)

        amount = discount.amount_for(order_amount)
        discount.used_count += 1
        self._repo.save(discount)
        logger.info(
            "discount.redeemed",
            code=discount.code,
            used_count=discount.used_count,
            discount_amount=str(amount),
        )
        return amount

    def active_count(self) -> int:
        return self._repo.active_count()


# ---------------------------------------------------------------------------
# Automation rules and templates
# ---------------------------------------------------------------------------


class AutomationService:
    def __init__(self, repository: IAutomationRepository) -> None:
        self._repo = repository

    # Rules

    def list_rules(self):
        return self._repo.list_rules()

    def get_rule(self, id: str) -> AutomationRule:
        rule = self._repo.get_rule(id)
        if not rule:
            raise RuleNotFound()
        return rule

    def _template_or_none(self, template_id) -> Optional[EmailTemplate]:
        if template_id is None:
            return None
        template = self._repo.get_template(str(template_id))
        if not template:
            raise TemplateNotFound()
        return template

    def create_rule(self, dto: AutomationRuleDTO) -> AutomationRule:
        rule = AutomationRule(
            name=dto.name,
            rule_type=dto.rule_type,
            trigger_config=dto.trigger_config,
            email_template=self._template_or_none(dto.email_template_id),
            is_active=dto.is_active,
        )
        rule = self._repo.save_rule(rule)
        logger.info("automation.rule_created", rule_id=str(rule.id), rule_type=rule.rule_type)
        return rule

    def update_rule(self, id: str, dto: UpdateAutomationRuleDTO) -> AutomationRule:
        rule = self.get_rule(id)
        changes = dto.model_dump(exclude_none=True)
        if "email_template_id" in changes:
            rule.email_template = self._template_or_none(changes.pop("email_template_id"))
        for field, value in changes.items():
            setattr(rule, field, value)
        return self._repo.save_rule(rule)

    def toggle_rule(self, id: str) -> AutomationRule:
        rule = self.get_rule(id)
        rule.is_active = not rule.is_active
        rule = self._repo.save_rule(rule)
        logger.info("automation.rule_toggled", rule_id=str(id), is_active=rule.is_active)
        return rule

    def delete_rule(self, id: str) -> None:
        self._repo.delete_rule(self.get_rule(id))

    def rule_stats(self) -> List[Dict[str, Any]]:
        return [
            {
                "rule_id": str(rule.id),
                "name": rule.name,
                "rule_type": rule.rule_type,
                "is_active": rule.is_active,
                "triggered": rule.triggered_count,
                "converted": rule.converted_count,
                "conversion_rate": rule.conversion_rate,
            }
            for rule in self._repo.list_rules()
        ]

    def trigger(self, rule_type: str, recipient: str, context: Dict[str, Any]) -> int:
        """Send the email of every active rule of ``rule_type``.

        Rules without a template are counted but send nothing.  Returns the
        number of emails delivered.
        """
        delivered = 0
        for rule in self._repo.active_rules(rule_type):
            self._repo.increment_triggered(rule)
            template = rule.email_template
            if template is None:
                continue
            if send_email(
                recipient,
                render(template.subject, context),
                render(template.content, context) + store_signature(),
            ):
                delivered += 1
        if delivered:
            logger.info("automation.triggered", rule_type=rule_type, delivered=delivered)
        return delivered

    # Templates

    def list_templates(self, category: Optional[str] = None):
        return self._repo.list_templates(category)

    def get_template(self, id: str) -> EmailTemplate:
        template = self._repo.get_template(id)
        if not template:
            raise TemplateNotFound()
        return template

    def create_template(self, dto: EmailTemplateDTO) -> EmailTemplate:
        return self._repo.save_template(EmailTemplate(**dto.model_dump()))

    def update_template(self, id: str, dto: UpdateEmailTemplateDTO) -> EmailTemplate:
        template = self.get_template(id)
        for field, value in dto.model_dump(exclude_none=True).items():
            setattr(template, field, value)
        return self._repo.save_template(template)

    def delete_template(self, id: str) -> None:
        self._repo.delete_template(self.get_template(id))


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------


def marketing_overview(
    campaigns: ICampaignRepository, discounts: IDiscountRepository
) -> Dict[str, Any]:
    totals = campaigns.totals()
    sent = totals["sent"]
    return {
        "total_campaigns": totals["total"],
        "campaigns_by_status": totals["by_status"],
        "active_campaigns": totals["by_status"].get(CampaignStatus.SCHEDULED, 0)
        + totals["by_status"].get(CampaignStatus.SENDING, 0),
        "total_sent": sent,
        "average_open_rate": round(totals["opened"] / sent, 4) if sent else 0.0,
        "average_click_rate": round(totals["clicked"] / sent, 4) if sent else 0.0,
        "active_discounts": discounts.active_count(),
        "total_signups": campaigns.list_signups().count(),
    }
