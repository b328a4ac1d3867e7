from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, List

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from django.db import models

    from modules.support.models import SupportTicket, TicketMessage


class ITicketRepository(IRepository["SupportTicket"]):
    """``list`` excludes order-issue tickets; ``owner=(user_id, email)`` narrows it."""

    @abstractmethod
    def add_message(self, ticket: SupportTicket, sender: str, message: str) -> TicketMessage:
        """Append to the thread and touch the ticket's ``updated_at``."""

    @abstractmethod
    def list_messages(self, ticket_id) -> List[TicketMessage]: ...
