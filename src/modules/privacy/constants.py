from django.db import models


class RequestType(models.TextChoices):
    ACCESS = "access", "Access"
    RECTIFICATION = "rectification", "Rectification"
    ERASURE = "erasure", "Erasure"
    PORTABILITY = "portability", "Portability"
    OBJECTION = "objection", "Objection"
    WITHDRAWAL = "withdrawal", "Consent withdrawal"


class RequestStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    REJECTED = "rejected", "Rejected"


class DataRetention(models.TextChoices):
    DAYS_30 = "30days", "30 days"
    ONE_YEAR = "1year", "1 year"
    INDEFINITE = "indefinite", "Indefinite"


FINAL_STATUSES: set[str] = {RequestStatus.COMPLETED, RequestStatus.REJECTED}

# Statutory response window.
RESPONSE_DAYS = 30

ERASED_EMAIL = "deleted_{id}@deleted.com"
ERASED_FIRST_NAME = "Deleted"
ERASED_LAST_NAME = "User"
ERASED_SHIPPING_INFO = {"name": "Deleted User", "address": "Deleted"}
