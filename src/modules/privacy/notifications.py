"""Data-subject request emails."""

from __future__ import annotations

from django.conf import settings

from modules.core.notifications import send_email, store_signature
from modules.privacy.constants import RESPONSE_DAYS
from modules.privacy.models import DataRightsRequest


def send_request_confirmation(request: DataRightsRequest) -> bool:
    body = (
        "We have received your data rights request:\n\n"
        f"Request ID: {request.reference}\n"
        f"Type: {request.get_request_type_display()}\n"
        f"Date: {request.created_at:%Y-%m-%d}\n\n"
        f"We will process it within {RESPONSE_DAYS} days and email you once it is complete."
        f"{store_signature()}"
    )
    return send_email(request.email, f"Data Rights Request Confirmation - {settings.STORE_NAME}", body)


def send_request_completed(request: DataRightsRequest, recipient: str) -> bool:
    details = (request.response_data or {}).get("message", "")
    body = (
        f"Your data rights request ({request.reference}) has been completed.\n\n"
        f"Request type: {request.get_request_type_display()}\n"
        + (f"Details: {details}\n" if details else "")
        + "\nIf you have any questions, please contact our support team."
        + store_signature()
    )
    return send_email(recipient, f"Data Rights Request Completed - {settings.STORE_NAME}", body)
