from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import models, transaction

from modules.support.constants import ORDER_ISSUE_TYPES
from modules.support.models import SupportTicket, TicketMessage
from modules.support.repositories.interfaces import ITicketRepository

logger = structlog.get_logger(__name__)


class TicketDjangoRepository(ITicketRepository):
    def _base(self) -> "models.QuerySet[SupportTicket]":
        return SupportTicket.objects.select_related("customer", "order")

    def get_by_id(self, id: str) -> Optional[SupportTicket]:
        try:
            return self._base().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> "models.QuerySet[SupportTicket]":
        filters = dict(filters or {})
        search = filters.pop("search", None)
        owner = filters.pop("owner", None)
        queryset = self._base().exclude(type__in=ORDER_ISSUE_TYPES).filter(**filters)
        if owner is not None:
            user_id, email = owner
            queryset = queryset.filter(
                models.Q(customer__user_id=user_id) | models.Q(email__iexact=email or "")
            )
        if search:
            queryset = queryset.filter(
                models.Q(email__icontains=search)
                | models.Q(subject__icontains=search)
                | models.Q(message__icontains=search)
            )
        return queryset.order_by("-created_at")

    def save(self, entity: SupportTicket) -> SupportTicket:
        entity.save()
        return entity

    def delete(self, id: str) -> bool:
        deleted, _ = SupportTicket.objects.filter(id=id).delete()
        return bool(deleted)

    @transaction.atomic
    def add_message(self, ticket: SupportTicket, sender: str, message: str) -> TicketMessage:
        entry = TicketMessage.objects.create(ticket=ticket, sender=sender, message=message)
        ticket.save(update_fields=["updated_at"])
        logger.info("ticket.message_added", ticket_id=str(ticket.id), sender=sender)
        return entry

    def list_messages(self, ticket_id) -> List[TicketMessage]:
        return list(TicketMessage.objects.filter(ticket_id=ticket_id).order_by("created_at"))
