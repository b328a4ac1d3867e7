"""Marketing constants: campaign, discount and automation enums."""

from django.db import models


class CampaignStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SCHEDULED = "scheduled", "Scheduled"
    SENDING = "sending", "Sending"
    COMPLETED = "completed", "Completed"


class TargetAudience(models.TextChoices):
    ALL = "all", "All subscribers"
    NEW = "new", "New customers"
    RETURNING = "returning", "Returning customers"
    INACTIVE = "inactive", "Inactive customers"


class DiscountType(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    FIXED = "fixed", "Fixed amount"


class DiscountStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    EXPIRED = "expired", "Expired"


class RuleType(models.TextChoices):
    WELCOME = "welcome", "Welcome"
    ABANDONED_CART = "abandoned_cart", "Abandoned cart"
    LOW_STOCK = "low_stock", "Low stock"
    BIRTHDAY = "birthday", "Birthday"
    REORDER = "reorder", "Reorder"


class TemplateCategory(models.TextChoices):
    WELCOME = "welcome", "Welcome"
    PROMOTIONAL = "promotional", "Promotional"
    TRANSACTIONAL = "transactional", "Transactional"
    ABANDONED_CART = "abandoned_cart", "Abandoned cart"


CAMPAIGN_NAME_MAX_LENGTH = 100
CAMPAIGN_SUBJECT_MAX_LENGTH = 200
DISCOUNT_CODE_MIN_LENGTH = 3
DISCOUNT_CODE_MAX_LENGTH = 20

NEW_CUSTOMER_DAYS = 30
INACTIVE_CUSTOMER_DAYS = 90

# Campaigns whose status no longer accepts edits or a new send.
LOCKED_CAMPAIGN_STATES = {CampaignStatus.SENDING, CampaignStatus.COMPLETED}
