"""Payment use cases: Stripe card payments, PayPal checkout and refunds.

Paid orders are created through ``OrderService.create_order`` with
``initial_status=confirmed`` and ``payment_status=succeeded``.  Confirmation
is idempotent per payment reference: replaying the same intent or PayPal
order returns the order that was already created.

The amount the provider collected travels as ``paid_amount``; the order
transaction rolls back unless it equals the order total.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

import structlog
from django.conf import settings

from modules.orders.constants import OrderStatus, PaymentMethod, PaymentStatus
from modules.orders.dtos import CreateOrderDTO
from modules.orders.exceptions import PaymentAmountMismatch
from modules.payments.exceptions import (
    AlreadyRefunded,
    CaptureNotFound,
    MissingPaymentReference,
    PaymentRequired,
)
from modules.payments.gateways import PAYPAL_CURRENCY, PayPalClient, StripeGateway, from_cents

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

    from modules.accounts.services import AccountService
    from modules.orders.models import Order
    from modules.orders.services import OrderService
    from modules.payments.dtos import PaymentIntentDTO, PayPalOrderDTO, RefundDTO

logger = structlog.get_logger(__name__)

STRIPE_REFERENCE_PREFIX = "pi_"


class PaymentService:
    def __init__(
        self,
        order_service: OrderService,
        account_service: AccountService,
        stripe_gateway: Optional[StripeGateway] = None,
        paypal_client: Optional[PayPalClient] = None,
    ) -> None:
        self._orders = order_service
        self._accounts = account_service
        self._stripe = stripe_gateway or StripeGateway()
        self._paypal = paypal_client or PayPalClient()

    # ------------------------------------------------------------------
    # Stripe
    # ------------------------------------------------------------------

    def create_payment_intent(self, dto: PaymentIntentDTO, user: AbstractBaseUser) -> Dict[str, Any]:
        result = self._stripe.create_payment_intent(dto.amount, user.pk, dto.currency)
        logger.info(
            "payment.intent_created",
            payment_intent_id=result["payment_intent_id"],
            amount=str(dto.amount),
        )
        return result

    def confirm_payment(
        self,
        payment_intent_id: str,
        order_data: Mapping[str, Any],
        user: AbstractBaseUser,
    ) -> Tuple[Order, bool]:
        """Create the paid order for a succeeded intent.

        Returns ``(order, created)``; ``created`` is False on a replay.

        Raises:
            PaymentRequired: the intent has not succeeded.
            PaymentAmountMismatch: the intent amount or currency differs from
                the order.
        """
        existing = self._orders.get_by_payment_reference(payment_intent_id)
        if existing:
            return self._orders.get_order(str(existing.id), user), False

        intent = self._stripe.retrieve_payment_intent(payment_intent_id)
        if intent["status"] != "succeeded":
            logger.warning(
                "payment.not_completed",
                payment_intent_id=payment_intent_id,
                status=intent["status"],
            )
            raise PaymentRequired()

        if str(intent.get("currency", "")).lower() != settings.STRIPE_CURRENCY.lower():
            raise PaymentAmountMismatch("Payment currency does not match the store currency.")

        order = self._create_paid_order(
            order_data,
            user,
            PaymentMethod.STRIPE,
            payment_intent_id,
            from_cents(intent["amount"]),
        )
        return order, True

    def handle_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        event = self._stripe.construct_event(payload, signature)
        event_type = event["type"]
        intent = event["data"]["object"]
        log = logger.bind(event_type=event_type, payment_intent_id=intent.get("id"))

        if event_type == "payment_intent.succeeded":
            order = self._orders.get_by_payment_reference(intent["id"])
            if order:
                self._orders.mark_paid(str(order.id))
            log.info("payment.webhook_succeeded", matched=bool(order))
        elif event_type == "payment_intent.payment_failed":
            order = self._orders.get_by_payment_reference(intent["id"])
            if order:
                error = intent.get("last_payment_error") or {}
                self._orders.mark_payment_failed(
                    str(order.id), error.get("message") or "Payment failed"
                )
            log.warning("payment.webhook_failed", matched=bool(order))
        else:
            log.debug("payment.webhook_ignored")
        return {"received": True}

    def payment_status(self, order_id: str, user: AbstractBaseUser) -> Dict[str, Any]:
        order = self._orders.get_order(order_id, user)
        return {
            "order_id": str(order.id),
            "payment_status": order.payment_status,
            "order_status": order.status,
            "payment_intent_id": order.payment_intent_id,
        }

    # ------------------------------------------------------------------
    # PayPal
    # ------------------------------------------------------------------

    def create_paypal_order(self, dto: PayPalOrderDTO) -> Dict[str, Any]:
        result = self._paypal.create_order(dto.amount)
        logger.info("payment.paypal_order_created", paypal_order_id=result.get("id"))
        return {"id": result.get("id"), "status": result.get("status")}

    def capture_paypal_order(
        self,
        paypal_order_id: str,
        order_data: Mapping[str, Any],
        user: AbstractBaseUser,
    ) -> Tuple[Order, Dict[str, Any]]:
        """Capture an approved PayPal order and create the paid order.

        Raises:
            PaymentRequired: the capture did not complete.
            PaymentAmountMismatch: the captured amount or currency differs
                from the order.
        """
        existing = self._orders.get_by_payment_reference(paypal_order_id)
        if existing:
            return self._orders.get_order(str(existing.id), user), {}

        capture = self._paypal.capture_order(paypal_order_id)
        if capture.get("status") != "COMPLETED":
            logger.warning(
                "payment.paypal_not_completed",
                paypal_order_id=paypal_order_id,
                status=capture.get("status"),
            )
            raise PaymentRequired("PayPal payment not completed.")

        captured = PayPalClient.captured_amount(capture)
        if captured is None:
            raise PaymentRequired("PayPal capture has no amount.")
        amount, currency = captured
        if currency != PAYPAL_CURRENCY:
            raise PaymentAmountMismatch("Payment currency does not match the store currency.")

        order = self._create_paid_order(
            order_data, user, PaymentMethod.PAYPAL, paypal_order_id, amount
        )
        return order, capture

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    def refund(self, dto: RefundDTO, actor: AbstractBaseUser) -> Dict[str, Any]:
        """Refund through the provider that took the payment.

        Raises:
            AlreadyRefunded: the order or its charge was refunded before.
            MissingPaymentReference: the order was not paid online.
            CaptureNotFound: the PayPal order has no capture.
        """
        order = self._orders.get_order(dto.order_id, actor)
        if order.status == OrderStatus.REFUNDED or order.payment_status == PaymentStatus.REFUNDED:
            raise AlreadyRefunded()

        reference = order.payment_intent_id
        if not reference:
            raise MissingPaymentReference()

        if reference.startswith(STRIPE_REFERENCE_PREFIX):
            result = self._stripe.refund(reference, dto.amount, dto.reason)
        else:
            result = self._refund_paypal(reference, dto.amount, dto.reason)

        order = self._orders.mark_refunded(str(order.id), dto.reason, actor)
        logger.info(
            "payment.refunded",
            order_id=str(order.id),
            refund_id=result["refund_id"],
            partial=dto.amount is not None,
        )
        return {**result, "order": order}

    def _refund_paypal(
        self, paypal_order_id: str, amount: Optional[Decimal], reason: str
    ) -> Dict[str, Any]:
        capture_id = self._paypal.first_capture_id(self._paypal.get_order(paypal_order_id))
        if not capture_id:
            raise CaptureNotFound()
        refund = self._paypal.refund_capture(capture_id, amount, reason)
        return {"refund_id": refund.get("id"), "status": refund.get("status")}

    # ------------------------------------------------------------------

    def _create_paid_order(
        self,
        order_data: Mapping[str, Any],
        user: AbstractBaseUser,
        method: PaymentMethod,
        reference: str,
        paid_amount: Decimal,
    ) -> Order:
        customer = self._accounts.get_customer_for_user(user)
        dto = CreateOrderDTO(
            **{
                **order_data,
                "payment_method": method,
                "payment_intent_id": reference,
                "payment_status": PaymentStatus.SUCCEEDED,
                "initial_status": OrderStatus.CONFIRMED,
                "enforce_stock": False,
                "paid_amount": paid_amount,
            }
        )
        order = self._orders.create_order(customer, dto, actor=user)
        logger.info(
            "payment.order_created",
            order_id=str(order.id),
            payment_method=method,
        )
        return order


def build_payment_service() -> PaymentService:
    from modules.accounts.repositories.django_repository import CustomerDjangoRepository
    from modules.accounts.services import AccountService
    from modules.orders.services import build_order_service

    return PaymentService(
        order_service=build_order_service(),
        account_service=AccountService(CustomerDjangoRepository()),
    )
