"""Payment exceptions.

Gateway failures surface as 502 so clients can tell a provider outage
apart from a rejected payment (402).
"""

from __future__ import annotations

from rest_framework import status

from modules.core.exceptions import DomainError


class PaymentRequired(DomainError):
    """The provider reports the payment as not completed."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "payment_not_completed"
    default_detail = "Payment not completed."


class PaymentGatewayError(DomainError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "payment_gateway_error"
    default_detail = "The payment provider could not process the request."


class AlreadyRefunded(DomainError):
    code = "already_refunded"
    default_detail = "Order already refunded."


class CaptureNotFound(DomainError):
    code = "capture_not_found"
    default_detail = "No PayPal capture found for this order."


class InvalidWebhook(DomainError):
    code = "invalid_webhook"
    default_detail = "Webhook signature verification failed."


class MissingPaymentReference(DomainError):
    code = "missing_payment_reference"
    default_detail = "Order has no payment reference to refund."
