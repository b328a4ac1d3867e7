"""Payment provider adapters.

``StripeGateway`` wraps the official ``stripe`` SDK; ``PayPalClient`` talks
to the PayPal Orders v2 REST API with ``requests``.  Both translate provider
failures into :class:`PaymentGatewayError` so the service layer never sees
SDK exception types.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Tuple

import requests
import stripe
import structlog
from django.conf import settings
from django.core.cache import cache

from modules.payments.exceptions import AlreadyRefunded, InvalidWebhook, PaymentGatewayError

logger = structlog.get_logger(__name__)

PAYPAL_BASE_URLS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}
PAYPAL_TOKEN_CACHE_KEY = "payments:paypal:access_token"
PAYPAL_TOKEN_EXPIRY_MARGIN = 60
PAYPAL_CURRENCY = "USD"


def to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


def format_amount(amount: Decimal) -> str:
    return str(Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------


class StripeGateway:
    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self._api_key = api_key or settings.STRIPE_SECRET_KEY
        self._webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET

    def create_payment_intent(
        self, amount: Decimal, user_id: Any, currency: Optional[str] = None
    ) -> Dict[str, Any]:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self._api_key,
                amount=to_cents(amount),
                currency=currency or settings.STRIPE_CURRENCY,
                metadata={"userId": str(user_id)},
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as exc:
            logger.error("stripe.intent_failed", error=str(exc))
            raise PaymentGatewayError("Failed to create payment intent.") from exc
        return {"client_secret": intent["client_secret"], "payment_intent_id": intent["id"]}

    def retrieve_payment_intent(self, payment_intent_id: str) -> Dict[str, Any]:
        try:
            return stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self._api_key)
        except stripe.StripeError as exc:
            logger.error("stripe.retrieve_failed", payment_intent_id=payment_intent_id)
            raise PaymentGatewayError("Failed to retrieve payment intent.") from exc

    def refund(
        self, payment_intent_id: str, amount: Optional[Decimal] = None, reason: str = ""
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "reason": "requested_by_customer",
        }
        if amount is not None:
            params["amount"] = to_cents(amount)
        if reason:
            params["metadata"] = {"reason": reason[:500]}
        try:
            refund = stripe.Refund.create(api_key=self._api_key, **params)
        except stripe.InvalidRequestError as exc:
            if getattr(exc, "code", None) == "charge_already_refunded":
                raise AlreadyRefunded() from exc
            logger.error("stripe.refund_failed", payment_intent_id=payment_intent_id)
            raise PaymentGatewayError("Failed to process refund.") from exc
        except stripe.StripeError as exc:
            logger.error("stripe.refund_failed", payment_intent_id=payment_intent_id)
            raise PaymentGatewayError("Failed to process refund.") from exc
        return {"refund_id": refund["id"], "status": refund["status"]}

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        try:
            return stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning("stripe.webhook_rejected", error=str(exc))
            raise InvalidWebhook() from exc


# ---------------------------------------------------------------------------
# PayPal
# ---------------------------------------------------------------------------


class PayPalClient:
    """Minimal Orders v2 client using client-credentials OAuth."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        environment: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._client_id = client_id or settings.PAYPAL_CLIENT_ID
        self._client_secret = client_secret or settings.PAYPAL_CLIENT_SECRET
        env = environment or settings.PAYPAL_ENV
        self.base_url = PAYPAL_BASE_URLS.get(env, PAYPAL_BASE_URLS["sandbox"])
        self._session = session or requests.Session()
        self._timeout = settings.PAYPAL_TIMEOUT_SECONDS

    def access_token(self) -> str:
        token = cache.get(PAYPAL_TOKEN_CACHE_KEY)
        if token:
            return token
        if not self._client_id or not self._client_secret:
            raise PaymentGatewayError("PayPal credentials are not configured.")

        payload = self._send(
            "post",
            "/v1/oauth2/token",
            auth=(self._client_id, self._client_secret),
            data={"grant_type": "client_credentials"},
            headers={"Accept": "application/json"},
        )
        token = payload["access_token"]
        ttl = int(payload.get("expires_in", 300)) - PAYPAL_TOKEN_EXPIRY_MARGIN
        if ttl > 0:
            cache.set(PAYPAL_TOKEN_CACHE_KEY, token, timeout=ttl)
        return token

    def _send(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("paypal.request_failed", method=method.upper(), path=path, error=str(exc))
            raise PaymentGatewayError() from exc
        return response.json() if response.content else {}

    def _call(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.access_token()}",
            "Content-Type": "application/json",
        }
        return self._send(method, path, json=json, headers=headers)

    def create_order(self, amount: Decimal, currency: str = PAYPAL_CURRENCY) -> Dict[str, Any]:
        return self._call(
            "post",
            "/v2/checkout/orders",
            json={
                "intent": "CAPTURE",
                "purchase_units": [
                    {"amount": {"currency_code": currency, "value": format_amount(amount)}}
                ],
            },
        )

    def capture_order(self, paypal_order_id: str) -> Dict[str, Any]:
        return self._call("post", f"/v2/checkout/orders/{paypal_order_id}/capture", json={})

    def get_order(self, paypal_order_id: str) -> Dict[str, Any]:
        return self._call("get", f"/v2/checkout/orders/{paypal_order_id}")

    def refund_capture(
        self,
        capture_id: str,
        amount: Optional[Decimal] = None,
        note: str = "",
        currency: str = PAYPAL_CURRENCY,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"note_to_payer": note or "requested_by_customer"}
        if amount is not None:
            body["amount"] = {"value": format_amount(amount), "currency_code": currency}
        return self._call("post", f"/v2/payments/captures/{capture_id}/refund", json=body)

    @staticmethod
    def first_capture_id(paypal_order: Dict[str, Any]) -> Optional[str]:
        units = paypal_order.get("purchase_units") or []
        if not units:
            return None
        captures = (units[0].get("payments") or {}).get("captures") or []
        return captures[0].get("id") if captures else None

    @staticmethod
    def captured_amount(capture: Dict[str, Any]) -> Optional[Tuple[Decimal, str]]:
        """``(value, currency_code)`` of the first capture in a capture response."""
        units = capture.get("purchase_units") or []
        if not units:
            return None
        captures = (units[0].get("payments") or {}).get("captures") or []
        amount = captures[0].get("amount") if captures else None
        if not amount or amount.get("value") is None:
            return None
        return Decimal(str(amount["value"])), str(amount.get("currency_code", "")).upper()
