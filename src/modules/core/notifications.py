"""Transactional email delivery.

Email is a side effect of orders, tickets and account flows; a failing mail
server must never roll back or fail the operation that triggered it, so
:func:`send_email` reports failure through its return value and the log.
"""

from __future__ import annotations

import smtplib
from typing import Iterable, Optional, Union

import structlog
from django.conf import settings
from django.core.mail import EmailMultiAlternatives

logger = structlog.get_logger(__name__)


def send_email(
    to: Union[str, Iterable[str]],
    subject: str,
    body: str,
    html: Optional[str] = None,
) -> bool:
    recipients = [to] if isinstance(to, str) else list(to)
    if not recipients:
        return False

    message = EmailMultiAlternatives(
        subject=subject,
        body=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=recipients,
    )
    if html:
        message.attach_alternative(html, "text/html")

    try:
        message.send(fail_silently=False)
    except (smtplib.SMTPException, OSError, ValueError) as exc:
        logger.warning(
            "email.send_failed",
            subject=subject,
            recipient_count=len(recipients),
            error=str(exc),
        )
        return False

    logger.info("email.sent", subject=subject, recipient_count=len(recipients))
    return True


def store_signature() -> str:
    return f"\n\n-- \n{settings.STORE_NAME}\n{settings.FRONTEND_URL}"
