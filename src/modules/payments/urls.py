"""Payment URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.payments.views import (
    ConfirmPaymentView,
    PaymentIntentView,
    PaymentStatusView,
    PayPalCaptureView,
    PayPalOrderView,
    RefundView,
    StripeWebhookView,
)

urlpatterns = [
    path(
        "payments/create-payment-intent/",
        PaymentIntentView.as_view(),
        name="payment-intent",
    ),
    path("payments/confirm-payment/", ConfirmPaymentView.as_view(), name="payment-confirm"),
    path("payments/webhook/", StripeWebhookView.as_view(), name="payment-webhook"),
    path(
        "payments/order/<uuid:order_id>/status/",
        PaymentStatusView.as_view(),
        name="payment-status",
    ),
    path("payments/refund/", RefundView.as_view(), name="payment-refund"),
    path("payments/paypal/create-order/", PayPalOrderView.as_view(), name="paypal-create"),
    path("payments/paypal/capture/", PayPalCaptureView.as_view(), name="paypal-capture"),
]
