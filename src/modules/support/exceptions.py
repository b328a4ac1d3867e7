from modules.core.exceptions import ForbiddenError, NotFoundError


class TicketNotFound(NotFoundError):
    code = "ticket_not_found"
    default_detail = "Ticket not found."


class NotTicketOwner(ForbiddenError):
    code = "not_ticket_owner"
    default_detail = "You can only access your own tickets."
