"""Marketing domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import ConflictError, DomainError, NotFoundError


class CampaignNotFound(NotFoundError):
    code = "campaign_not_found"
    default_detail = "Campaign not found."


class CampaignAlreadySent(DomainError):
    code = "campaign_already_sent"
    default_detail = "Campaign has already been sent."


class EmptyAudience(DomainError):
    code = "empty_audience"
    default_detail = "No recipients found for this target audience."


class DiscountNotFound(NotFoundError):
    code = "discount_not_found"
    default_detail = "Discount code not found."


class DiscountCodeTaken(ConflictError):
    code = "discount_code_taken"
    default_detail = "Discount code already exists."


class InvalidDiscount(DomainError):
    """The code exists but cannot be applied to this order."""

    code = "invalid_discount"
    default_detail = "Discount code cannot be applied."


class RuleNotFound(NotFoundError):
    code = "automation_rule_not_found"
    default_detail = "Automation rule not found."


class TemplateNotFound(NotFoundError):
    code = "email_template_not_found"
    default_detail = "Email template not found."


class AlreadySubscribed(ConflictError):
    code = "already_subscribed"
    default_detail = "This email is already subscribed."


class TrackingNotFound(NotFoundError):
    code = "email_tracking_not_found"
    default_detail = "Unknown tracking token."
