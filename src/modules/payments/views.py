"""Payment API views."""

from __future__ import annotations

from typing import Any, Dict

from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.orders.serializers import OrderSerializer
from modules.payments.dtos import PaymentIntentDTO, PayPalOrderDTO, RefundDTO
from modules.payments.services import build_payment_service

_ORDER_KEYS = {
    "shipping_info": ("shipping_info", "shippingInfo"),
    "address_id": ("address_id", "addressId"),
    "notes": ("notes",),
    "discount_code": ("discount_code", "discountCode"),
    "session_id": ("session_id", "sessionId"),
}


def _order_payload(data: Any) -> Dict[str, Any]:
    """Pick the order fields out of a checkout ``orderData`` object."""
    if not isinstance(data, dict):
        data = {}
    payload: Dict[str, Any] = {
        "items": [
            {
                "product_id": item.get("product_id") or item.get("id"),
                "quantity": item.get("quantity"),
            }
            for item in (data.get("items") or [])
            if isinstance(item, dict)
        ]
    }
    for field, aliases in _ORDER_KEYS.items():
        for alias in aliases:
            if data.get(alias) is not None:
                payload[field] = data[alias]
                break
    return payload


def _order_data(request: Request) -> Any:
    return request.data.get("order_data") or request.data.get("orderData")


class PaymentIntentView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        """POST /api/v1/payments/create-payment-intent/"""
        dto = PaymentIntentDTO(
            amount=request.data.get("amount"),
            currency=request.data.get("currency"),
        )
        result = build_payment_service().create_payment_intent(dto, request.user)
        return Response(
            {
                "client_secret": result["client_secret"],
                "payment_intent_id": result["payment_intent_id"],
            }
        )


class ConfirmPaymentView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        """POST /api/v1/payments/confirm-payment/

        Returns 201 with the new order, or 200 when the intent was already
        turned into an order.
        """
        payment_intent_id = request.data.get("payment_intent_id") or request.data.get(
            "paymentIntentId"
        )
        if not payment_intent_id:
            raise ValidationError({"payment_intent_id": "Payment intent ID is required."})
        order, created = build_payment_service().confirm_payment(
            payment_intent_id, _order_payload(_order_data(request)), request.user
        )
        return Response(
            {
                "success": True,
                "order_id": str(order.id),
                "payment_status": order.payment_status,
                "order": OrderSerializer(order).data,
            },
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class StripeWebhookView(APIView):
    """Signature-verified Stripe events; no session or JWT auth."""

    authentication_classes: list = []
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        signature = request.headers.get("Stripe-Signature", "")
        return Response(build_payment_service().handle_webhook(request.body, signature))


class PaymentStatusView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request: Request, order_id: str) -> Response:
        """GET /api/v1/payments/order/{order_id}/status/"""
        return Response(build_payment_service().payment_status(str(order_id), request.user))


class RefundView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request: Request) -> Response:
        """POST /api/v1/payments/refund/ ``{order_id, amount?, reason?}``"""
        data = request.data
        dto = RefundDTO(
            order_id=str(data.get("order_id") or data.get("orderId") or ""),
            amount=data.get("amount"),
            reason=data.get("reason") or "",
        )
        result = build_payment_service().refund(dto, request.user)
        return Response(
            {
                "success": True,
                "refund_id": result["refund_id"],
                "status": result["status"],
                "order": OrderSerializer(result["order"]).data,
            }
        )


class PayPalOrderView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        """POST /api/v1/payments/paypal/create-order/"""
        dto = PayPalOrderDTO(amount=request.data.get("amount"))
        return Response(
            build_payment_service().create_paypal_order(dto), status=status.HTTP_201_CREATED
        )


class PayPalCaptureView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        """POST /api/v1/payments/paypal/capture/ ``{order_id, order_data}``"""
        paypal_order_id = request.data.get("paypal_order_id") or request.data.get("orderID")
        order_data = _order_data(request)
        if not paypal_order_id or not order_data:
            raise ValidationError("orderID and orderData are required.")
        order, capture = build_payment_service().capture_paypal_order(
            paypal_order_id, _order_payload(order_data), request.user
        )
        return Response(
            {
                "success": True,
                "order_id": str(order.id),
                "payment_status": order.payment_status,
                "order": OrderSerializer(order).data,
                "paypal_details": capture,
            }
        )
