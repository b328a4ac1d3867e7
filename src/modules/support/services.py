"""Support ticket use cases.

Anyone can open a ticket.  Signed-in customers see tickets raised from their
account or under their email; staff see everything.  Email delivery never
fails the operation that triggered it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.db import transaction

from modules.core.permissions import is_admin
from modules.support import notifications
from modules.support.constants import MessageSender
from modules.support.exceptions import NotTicketOwner, TicketNotFound
from modules.support.models import SupportTicket

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

    from modules.accounts.models import Customer
    from modules.support.dtos import CreateTicketDTO, ReplyDTO, TicketQueryDTO, TicketStatusDTO
    from modules.support.models import TicketMessage
    from modules.support.repositories.interfaces import ITicketRepository

logger = structlog.get_logger(__name__)


class SupportService:
    def __init__(self, repository: ITicketRepository) -> None:
        self._repo = repository

    def create_ticket(
        self, dto: CreateTicketDTO, customer: Optional[Customer] = None
    ) -> SupportTicket:
        ticket = SupportTicket(
            customer=customer,
            name=dto.name or (customer.full_name if customer else ""),
            email=dto.email,
            subject=dto.subject,
            message=dto.message,
            type=dto.type,
            priority=dto.priority,
            order_id=dto.order_id,
            item_ids=list(dto.item_ids),
            reason=dto.reason,
        )
        ticket = self._repo.save(ticket)
        logger.info(
            "ticket.created",
            ticket_id=str(ticket.id),
            reference=ticket.reference,
            type=ticket.type,
        )
        notifications.send_ticket_confirmation(ticket)
        return ticket

    def list_tickets(self, user: AbstractBaseUser, query: TicketQueryDTO):
        filters: Dict[str, Any] = {}
        if query.status and query.status != "all":
            filters["status"] = query.status
        if query.search:
            filters["search"] = query.search
        if not is_admin(user):
            filters["owner"] = (user.pk, user.email)
        return self._repo.list(filters)

    def _owns(self, ticket: SupportTicket, user: AbstractBaseUser) -> bool:
        if ticket.customer is not None and ticket.customer.user_id == user.pk:
            return True
        return bool(user.email) and ticket.email.lower() == user.email.lower()

    def get_ticket(self, ticket_id: str, user: AbstractBaseUser) -> SupportTicket:
        """Raises:
        TicketNotFound: unknown ticket.
        NotTicketOwner: the caller is neither staff nor the ticket author.
        """
        ticket = self._repo.get_by_id(ticket_id)
        if not ticket:
            raise TicketNotFound()
        if not is_admin(user) and not self._owns(ticket, user):
            raise NotTicketOwner()
        return ticket

    def list_messages(self, ticket: SupportTicket) -> List[TicketMessage]:
        return self._repo.list_messages(ticket.id)

    @transaction.atomic
    def reply(self, ticket_id: str, dto: ReplyDTO, user: AbstractBaseUser) -> TicketMessage:
        ticket = self.get_ticket(ticket_id, user)
        from_staff = is_admin(user)
        entry = self._repo.add_message(
            ticket,
            MessageSender.ADMIN if from_staff else MessageSender.USER,
            dto.message,
        )
        if from_staff:
            notifications.send_reply_notification(ticket, dto.message)
        return entry

    @transaction.atomic
    def update_status(self, ticket_id: str, dto: TicketStatusDTO) -> SupportTicket:
        ticket = self._repo.get_by_id(ticket_id)
        if not ticket:
            raise TicketNotFound()
        old_status = ticket.status
        ticket.status = dto.status
        ticket = self._repo.save(ticket)
        logger.info(
            "ticket.status_changed",
            ticket_id=str(ticket.id),
            old_status=old_status,
            new_status=ticket.status,
        )
        notifications.send_status_notification(ticket)
        return ticket
