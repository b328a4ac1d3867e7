"""Support ticket emails."""

from __future__ import annotations

from django.conf import settings

from modules.core.notifications import send_email, store_signature
from modules.support.models import SupportTicket


def ticket_url(ticket: SupportTicket) -> str:
    return f"{settings.FRONTEND_URL}/support/{ticket.id}"


def send_ticket_confirmation(ticket: SupportTicket) -> bool:
    name = ticket.name or ticket.email.split("@")[0]
    body = (
        f"Hi {name},\n\n"
        f"We received your request \"{ticket.subject}\" (reference {ticket.reference}). "
        "Our team will get back to you as soon as possible.\n\n"
        f"You can follow the conversation here: {ticket_url(ticket)}"
        f"{store_signature()}"
    )
    return send_email(ticket.email, f"Support Ticket Created - {settings.STORE_NAME}", body)


def send_reply_notification(ticket: SupportTicket, message: str) -> bool:
    body = (
        "Your support ticket has received a reply from our team:\n\n"
        f"{message}\n\n"
        f"You can view and reply to your ticket here: {ticket_url(ticket)}"
        f"{store_signature()}"
    )
    return send_email(
        ticket.email, f"{settings.STORE_NAME} Support Ticket Update: {ticket.subject}", body
    )


def send_status_notification(ticket: SupportTicket) -> bool:
    body = (
        "The status of your support ticket has changed to "
        f"{ticket.get_status_display()}.\n\n"
        f"You can view your ticket here: {ticket_url(ticket)}"
        f"{store_signature()}"
    )
    return send_email(
        ticket.email,
        f"{settings.STORE_NAME} Support Ticket Status Updated: {ticket.subject}",
        body,
    )
