from django.db import models


class TicketStatus(models.TextChoices):
    OPEN = "open", "Open"
    IN_PROGRESS = "in_progress", "In progress"
    RESOLVED = "resolved", "Resolved"
    CLOSED = "closed", "Closed"


class TicketPriority(models.TextChoices):
    LOW = "low", "Low"
    NORMAL = "normal", "Normal"
    HIGH = "high", "High"
    URGENT = "urgent", "Urgent"


class TicketType(models.TextChoices):
    SUPPORT = "support", "Support"
    RETURN = "return", "Return"
    CANCELLATION = "cancellation", "Cancellation"


class MessageSender(models.TextChoices):
    ADMIN = "admin", "Admin"
    USER = "user", "User"


# Order issue tickets are handled from the order screens, not the helpdesk.
ORDER_ISSUE_TYPES: set[str] = {TicketType.RETURN, TicketType.CANCELLATION}

TICKET_REFERENCE_MAX_RETRIES = 5
