"""Integration tests for the payment endpoints.

The Stripe SDK and the PayPal client are patched at their call sites.

Covers:
- create-payment-intent / confirm-payment (201 then 200 on replay, 402).
- Paid amounts that differ from the order total are refused.
- Gateway failures answer 502.
- Stripe webhook signature handling.
- Payment status visibility.
- Admin refund.
- PayPal create-order / capture.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
import stripe

from modules.orders.constants import OrderStatus, PaymentMethod, PaymentStatus
from modules.orders.models import Order
from modules.payments.exceptions import PaymentGatewayError
from modules.payments.gateways import PayPalClient

pytestmark = pytest.mark.integration

BASE_URL = "/api/v1/payments/"

SHIPPING = {"name": "Ana Souza", "address": "123 Main St", "city": "Portland", "zip": "97201"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _order_data(product, quantity=1):
    return {"items": [{"id": str(product.id), "quantity": quantity}], "shippingInfo": SHIPPING}


def _intent(status="succeeded", id="pi_123", amount=5998):
    return {
        "id": id,
        "status": status,
        "client_secret": f"{id}_secret",
        "amount": amount,
        "currency": "usd",
    }


def _capture(value):
    return {
        "id": "PP-1",
        "status": "COMPLETED",
        "purchase_units": [
            {
                "payments": {
                    "captures": [
                        {"id": "CAP-1", "amount": {"value": value, "currency_code": "USD"}}
                    ]
                }
            }
        ],
    }


# ===========================================================================
# Stripe
# ===========================================================================


class TestPaymentIntent:
    def test_create(self, auth_client):
        with patch.object(stripe.PaymentIntent, "create", return_value=_intent()) as create:
            response = auth_client.post(
                f"{BASE_URL}create-payment-intent/", {"amount": "59.98"}, format="json"
            )

        assert response.status_code == 200
        assert response.json() == {
            "client_secret": "pi_123_secret",
            "payment_intent_id": "pi_123",
        }
        assert create.call_args.kwargs["amount"] == 5998

    def test_invalid_amount(self, auth_client):
        response = auth_client.post(
            f"{BASE_URL}create-payment-intent/", {"amount": "0"}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["attr"] == "amount"

    def test_gateway_failure_returns_502(self, gateway_client):
        with patch.object(stripe.PaymentIntent, "create", side_effect=stripe.StripeError("down")):
            response = gateway_client.post(
                f"{BASE_URL}create-payment-intent/", {"amount": "10"}, format="json"
            )
        assert response.status_code == 502
        assert response.json()["errors"][0]["code"] == "payment_gateway_error"

    def test_requires_authentication(self, api_client):
        response = api_client.post(
            f"{BASE_URL}create-payment-intent/", {"amount": "10"}, format="json"
        )
        assert response.status_code == 401


class TestConfirmPayment:
    def test_creates_order_then_replays(self, auth_client, product):
        payload = {"paymentIntentId": "pi_123", "orderData": _order_data(product, 2)}

        with patch.object(stripe.PaymentIntent, "retrieve", return_value=_intent()):
            first = auth_client.post(f"{BASE_URL}confirm-payment/", payload, format="json")
            second = auth_client.post(f"{BASE_URL}confirm-payment/", payload, format="json")

        assert first.status_code == 201
        assert second.status_code == 200
        data = first.json()
        assert data["success"] is True
        assert data["payment_status"] == PaymentStatus.SUCCEEDED
        assert data["order"]["status"] == OrderStatus.CONFIRMED
        assert data["order"]["total_amount"] == "59.98"
        assert second.json()["order_id"] == data["order_id"]

    def test_unpaid_intent_returns_402(self, auth_client, product):
        payload = {"payment_intent_id": "pi_123", "order_data": _order_data(product)}
        with patch.object(
            stripe.PaymentIntent, "retrieve", return_value=_intent("requires_payment_method")
        ):
            response = auth_client.post(f"{BASE_URL}confirm-payment/", payload, format="json")

        assert response.status_code == 402
        assert response.json()["errors"][0]["code"] == "payment_not_completed"

    def test_amount_mismatch_returns_402(self, auth_client, product):
        payload = {"paymentIntentId": "pi_123", "orderData": _order_data(product, 2)}
        with patch.object(stripe.PaymentIntent, "retrieve", return_value=_intent(amount=100)):
            response = auth_client.post(f"{BASE_URL}confirm-payment/", payload, format="json")

        assert response.status_code == 402
        assert response.json()["errors"][0]["code"] == "payment_amount_mismatch"
        assert not Order.objects.exists()

    def test_missing_intent_id(self, auth_client, product):
        response = auth_client.post(
            f"{BASE_URL}confirm-payment/", {"orderData": _order_data(product)}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["attr"] == "payment_intent_id"


class TestWebhook:
    def test_bad_signature_returns_400(self, api_client):
        error = stripe.SignatureVerificationError("bad", "sig")
        with patch.object(stripe.Webhook, "construct_event", side_effect=error):
            response = api_client.post(
                f"{BASE_URL}webhook/",
                data=b"{}",
                content_type="application/json",
                HTTP_STRIPE_SIGNATURE="sig",
            )

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "invalid_webhook"

    def test_succeeded_event(self, api_client, make_order, customer, product):
        order = make_order(
            customer, [(product, 1)], payment_method=PaymentMethod.STRIPE, payment_intent_id="pi_7"
        )
        event = {"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_7"}}}

        with patch.object(stripe.Webhook, "construct_event", return_value=event) as construct:
            response = api_client.post(
                f"{BASE_URL}webhook/",
                data=b'{"id": "evt_1"}',
                content_type="application/json",
                HTTP_STRIPE_SIGNATURE="t=1,v1=abc",
            )

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert construct.call_args.args[:2] == (b'{"id": "evt_1"}', "t=1,v1=abc")
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.SUCCEEDED


class TestPaymentStatus:
    def test_owner(self, auth_client, order):
        response = auth_client.get(f"{BASE_URL}order/{order.id}/status/")
        assert response.status_code == 200
        assert response.json()["payment_status"] == PaymentStatus.PENDING

    def test_other_customer_gets_404(self, other_client, order):
        response = other_client.get(f"{BASE_URL}order/{order.id}/status/")
        assert response.status_code == 404


class TestRefund:
    def test_admin_refund(self, admin_client, make_order, customer, product):
        order = make_order(
            customer, [(product, 1)], payment_method=PaymentMethod.STRIPE, payment_intent_id="pi_8"
        )
        with patch.object(
            stripe.Refund, "create", return_value={"id": "re_1", "status": "succeeded"}
        ):
            response = admin_client.post(
                f"{BASE_URL}refund/",
                {"orderId": str(order.id), "reason": "Damaged"},
                format="json",
            )

        assert response.status_code == 200
        data = response.json()
        assert data["refund_id"] == "re_1"
        assert data["order"]["status"] == OrderStatus.REFUNDED

    def test_manual_order_returns_400(self, admin_client, order):
        response = admin_client.post(
            f"{BASE_URL}refund/", {"order_id": str(order.id)}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "missing_payment_reference"

    def test_customer_forbidden(self, auth_client, order):
        response = auth_client.post(
            f"{BASE_URL}refund/", {"order_id": str(order.id)}, format="json"
        )
        assert response.status_code == 403


# ===========================================================================
# PayPal
# ===========================================================================


class TestPayPal:
    def test_create_order(self, auth_client):
        with patch.object(
            PayPalClient, "create_order", return_value={"id": "PP-1", "status": "CREATED"}
        ):
            response = auth_client.post(
                f"{BASE_URL}paypal/create-order/", {"amount": "20.00"}, format="json"
            )

        assert response.status_code == 201
        assert response.json() == {"id": "PP-1", "status": "CREATED"}

    def test_capture(self, auth_client, product):
        capture = _capture("29.99")
        with patch.object(PayPalClient, "capture_order", return_value=capture):
            response = auth_client.post(
                f"{BASE_URL}paypal/capture/",
                {"orderID": "PP-1", "orderData": _order_data(product)},
                format="json",
            )

        assert response.status_code == 200
        data = response.json()
        assert data["paypal_details"] == capture
        assert data["order"]["payment_method"] == PaymentMethod.PAYPAL

    def test_capture_requires_order_data(self, auth_client):
        response = auth_client.post(
            f"{BASE_URL}paypal/capture/", {"orderID": "PP-1"}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["type"] == "validation_error"

    def test_create_order_gateway_failure(self, gateway_client):
        with patch.object(PayPalClient, "create_order", side_effect=PaymentGatewayError()):
            response = gateway_client.post(
                f"{BASE_URL}paypal/create-order/", {"amount": "20.00"}, format="json"
            )

        assert response.status_code == 502
        assert response.json()["errors"][0]["code"] == "payment_gateway_error"

    def test_capture_amount_mismatch(self, auth_client, product):
        with patch.object(PayPalClient, "capture_order", return_value=_capture("1.00")):
            response = auth_client.post(
                f"{BASE_URL}paypal/capture/",
                {"orderID": "PP-1", "orderData": _order_data(product)},
                format="json",
            )

        assert response.status_code == 402
        assert response.json()["errors"][0]["code"] == "payment_amount_mismatch"
