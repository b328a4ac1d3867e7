"""Support tickets and their message threads.

A ticket can be opened without an account; ``customer`` is set when the
author was signed in.  Ownership checks fall back to the ticket email.
"""

from __future__ import annotations

import secrets
from typing import Any

from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.support.constants import (
    TICKET_REFERENCE_MAX_RETRIES,
    MessageSender,
    TicketPriority,
    TicketStatus,
    TicketType,
)


class SupportTicket(BaseModel):
    reference = models.CharField(max_length=24, unique=True, editable=False)
    customer = models.ForeignKey(
        "accounts.Customer",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tickets",
    )
    name = models.CharField(max_length=150, blank=True, default="")
    email = models.EmailField(db_index=True)
    subject = models.CharField(max_length=200)
    message = models.TextField()
    status = models.CharField(
        max_length=20, choices=TicketStatus.choices, default=TicketStatus.OPEN
    )
    priority = models.CharField(
        max_length=10, choices=TicketPriority.choices, default=TicketPriority.NORMAL
    )
    type = models.CharField(max_length=20, choices=TicketType.choices, default=TicketType.SUPPORT)
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tickets",
    )
    item_ids = models.JSONField(default=list, blank=True)
    reason = models.TextField(blank=True, default="")

    class Meta:
        db_table = "support_tickets"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="idx_ticket_status_created"),
        ]

    @staticmethod
    def generate_reference() -> str:
        """``TKT-YYYYMMDD-XXXXXX``"""
        return f"TKT-{timezone.now():%Y%m%d}-{secrets.token_hex(3).upper()}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.reference:
            for _ in range(TICKET_REFERENCE_MAX_RETRIES):
                candidate = self.generate_reference()
                if not SupportTicket.objects.filter(reference=candidate).exists():
                    self.reference = candidate
                    break
            else:
                raise RuntimeError("Failed to generate a unique ticket reference")
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.reference} ({self.status})"


class TicketMessage(BaseModel):
    ticket = models.ForeignKey(SupportTicket, on_delete=models.CASCADE, related_name="messages")
    sender = models.CharField(max_length=10, choices=MessageSender.choices)
    message = models.TextField()

    class Meta:
        db_table = "support_ticket_messages"
        ordering = ["created_at"]
