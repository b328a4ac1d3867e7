"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.  Domain and DTO
validation errors propagate to ``modules.core.exceptions.api_exception_handler``.
"""

from __future__ import annotations

from django.http import HttpResponse
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.accounts.repositories.django_repository import CustomerDjangoRepository
from modules.accounts.services import AccountService
from modules.core.pagination import StandardResultsSetPagination
from modules.orders.documents import render_invoice, render_shipping_label
from modules.orders.dtos import (
    CreateOrderDTO,
    ModifyOrderDTO,
    OrderQueryDTO,
    ReasonDTO,
    UpdateStatusDTO,
)
from modules.orders.serializers import (
    OrderListSerializer,
    OrderSerializer,
    OrderStatsSerializer,
    StatusHistorySerializer,
)
from modules.orders.services import build_order_service

_QUERY_PARAMS = {
    "status": "status",
    "date_from": "date_from",
    "dateFrom": "date_from",
    "date_to": "date_to",
    "dateTo": "date_to",
    "search": "search",
    "customer_email": "customer_email",
    "customerEmail": "customer_email",
    "sort_by": "sort_by",
    "sortBy": "sort_by",
    "sort_order": "sort_order",
    "sortOrder": "sort_order",
    "limit": "limit",
    "offset": "offset",
}


def _order_query(request: Request) -> OrderQueryDTO:
    params = {
        target: request.query_params[source]
        for source, target in _QUERY_PARAMS.items()
        if request.query_params.get(source) not in (None, "")
    }
    return OrderQueryDTO(**params)


def _items(data) -> list:
    """Accept ``product_id`` or the storefront cart's ``id`` per line."""
    return [
        {
            "product_id": item.get("product_id") or item.get("id"),
            "quantity": item.get("quantity"),
        }
        for item in (data.get("items") or [])
        if isinstance(item, dict)
    ]


def _pdf_response(content: bytes, filename: str) -> HttpResponse:
    response = HttpResponse(content, content_type="application/pdf")
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


class OrderViewSet(GenericViewSet):
    """Customer order endpoints plus the admin per-order actions.

    Does **not** extend ``ModelViewSet``; all ORM access goes through
    the service/repository layer.
    """

    serializer_class = OrderSerializer
    pagination_class = StandardResultsSetPagination

    _ADMIN_ACTIONS = {"update_status", "modify", "invoice", "shipping_label"}

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_permissions(self):
        if self.action in self._ADMIN_ACTIONS:
            return [IsAdminUser()]
        return [IsAuthenticated()]

    def get_throttles(self) -> list[BaseThrottle]:
        """Per-action throttling scopes."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        Returns 200 if the key was already used, 201 for new orders.
        """
        idempotency_key = request.headers.get("Idempotency-Key")
        existing = self._service.find_by_idempotency_key(idempotency_key)
        if existing:
            order = self._service.get_order(str(existing.id), request.user)
            return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)

        customer = AccountService(CustomerDjangoRepository()).get_customer_for_user(request.user)
        data = request.data
        dto = CreateOrderDTO(
            items=_items(data),
            shipping_info=data.get("shipping_info") or data.get("shippingInfo"),
            address_id=data.get("address_id"),
            notes=data.get("notes", ""),
            discount_code=data.get("discount_code") or data.get("discountCode"),
            session_id=data.get("session_id") or data.get("sessionId"),
            idempotency_key=idempotency_key,
        )
        order = self._service.create_order(customer, dto, actor=request.user)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        The caller's own orders, filtered by status, date range and search.
        """
        customer = AccountService(CustomerDjangoRepository()).get_customer_for_user(request.user)
        queryset = self._service.list_for_customer(customer, _order_query(request))

        page = self.paginate_queryset(queryset)
        serializer = OrderListSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        order = self._service.get_order(str(pk), request.user)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["get"])
    def history(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/history/"""
        entries = self._service.get_history(str(pk), request.user)
        return Response({"history": StatusHistorySerializer(entries, many=True).data})

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/status/ (admin)"""
        data = request.data
        dto = UpdateStatusDTO(
            status=data.get("status"),
            reason=data.get("reason") or "",
            tracking_number=data.get("tracking_number") or data.get("trackingNumber"),
            estimated_delivery=data.get("estimated_delivery") or data.get("estimatedDelivery"),
        )
        order = self._service.update_status(str(pk), dto, actor=request.user)
        return Response(
            {
                "message": "Order status updated successfully",
                "new_status": order.status,
                "order": OrderSerializer(order).data,
            }
        )

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/"""
        dto = ReasonDTO(reason=request.data.get("reason") or "")
        order = self._service.cancel_order(str(pk), dto.reason, actor=request.user)
        return Response(
            {"message": "Order cancelled successfully", "order": OrderSerializer(order).data}
        )

    @action(detail=True, methods=["post"], url_path="return-request")
    def return_request(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/return-request/"""
        dto = ReasonDTO(reason=request.data.get("reason") or "")
        order = self._service.request_return(str(pk), dto.reason, actor=request.user)
        return Response(
            {
                "message": "Return request submitted successfully",
                "new_status": order.status,
                "order": OrderSerializer(order).data,
            }
        )

    @action(detail=True, methods=["patch"])
    def modify(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/modify/ (admin)"""
        data = request.data
        dto = ModifyOrderDTO(
            items=_items(data),
            shipping_info=data.get("shipping_info") or data.get("shippingInfo"),
            reason=data.get("reason") or "",
        )
        order = self._service.modify_order(str(pk), dto, actor=request.user)
        return Response(
            {"message": "Order modified successfully", "order": OrderSerializer(order).data}
        )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @action(detail=True, methods=["get"])
    def invoice(self, request: Request, pk: str | None = None) -> HttpResponse:
        """GET /api/v1/orders/{pk}/invoice/ (admin)"""
        order = self._service.get_order(str(pk), request.user)
        return _pdf_response(render_invoice(order), f"invoice-{order.order_number}.pdf")

    @action(detail=True, methods=["get"], url_path="shipping-label")
    def shipping_label(self, request: Request, pk: str | None = None) -> HttpResponse:
        """GET /api/v1/orders/{pk}/shipping-label/ (admin)"""
        order = self._service.get_order(str(pk), request.user)
        return _pdf_response(
            render_shipping_label(order), f"shipping-label-{order.order_number}.pdf"
        )


class AdminOrderViewSet(GenericViewSet):
    """Back-office order grid under ``/api/v1/admin/orders/``."""

    permission_classes = [IsAdminUser]
    serializer_class = OrderListSerializer
    throttle_scope = "order_listing"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def list(self, request: Request) -> Response:
        """GET /api/v1/admin/orders/?status=&date_from=&customer_email=&limit=&offset="""
        result = self._service.list_all(_order_query(request))
        return Response(
            {
                "orders": OrderListSerializer(result["items"], many=True).data,
                "pagination": {
                    "total": result["total"],
                    "limit": result["limit"],
                    "offset": result["offset"],
                    "hasMore": result["has_more"],
                },
            }
        )

    @action(detail=False, methods=["get"])
    def stats(self, request: Request) -> Response:
        """GET /api/v1/admin/orders/stats/"""
        return Response(OrderStatsSerializer(self._service.stats()).data)
