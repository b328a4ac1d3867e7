"""Account emails: verification and password reset."""

from __future__ import annotations

from django.conf import settings

from modules.accounts.models import Customer
from modules.core.notifications import send_email, store_signature


def send_verification_email(customer: Customer, token: str) -> bool:
    link = f"{settings.FRONTEND_URL}/auth/verify-email?token={token}"
    body = (
        f"Hi {customer.first_name},\n\n"
        f"Welcome to {settings.STORE_NAME}! Please confirm your email address "
        f"within {settings.EMAIL_VERIFICATION_HOURS} hours:\n\n{link}"
        f"{store_signature()}"
    )
    return send_email(customer.email, f"Verify your email - {settings.STORE_NAME}", body)


def send_password_reset_email(customer: Customer, token: str) -> bool:
    link = f"{settings.FRONTEND_URL}/auth/reset-password?token={token}"
    body = (
        f"Hi {customer.first_name},\n\n"
        "We received a request to reset your password. The link below is valid "
        f"for {settings.PASSWORD_RESET_HOURS} hour(s):\n\n{link}\n\n"
        "If you did not ask for this you can ignore this email."
        f"{store_signature()}"
    )
    return send_email(customer.email, f"Reset your password - {settings.STORE_NAME}", body)
