"""Support ticket API views."""

from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.accounts.repositories.django_repository import CustomerDjangoRepository
from modules.accounts.services import AccountService
from modules.core.requests import dto_kwargs
from modules.support.dtos import CreateTicketDTO, ReplyDTO, TicketQueryDTO, TicketStatusDTO
from modules.support.repositories.django_repository import TicketDjangoRepository
from modules.support.serializers import SupportTicketSerializer, TicketMessageSerializer
from modules.support.services import SupportService


class SupportTicketViewSet(GenericViewSet):
    serializer_class = SupportTicketSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = SupportService(TicketDjangoRepository())

    def get_permissions(self):
        if self.action == "create":
            return [AllowAny()]
        if self.action == "update_status":
            return [IsAdminUser()]
        return [IsAuthenticated()]

    def get_throttles(self):
        self.throttle_scope = "support" if self.action == "create" else None
        return super().get_throttles()

    def create(self, request: Request) -> Response:
        """POST /api/v1/support/tickets/ (public)"""
        data = dict(request.data.items())
        data.setdefault("order_id", data.get("orderId"))
        data.setdefault("item_ids", data.get("itemIds"))
        dto = CreateTicketDTO(**dto_kwargs(data, CreateTicketDTO))
        customer = AccountService(CustomerDjangoRepository()).find_customer_for_user(request.user)
        ticket = self._service.create_ticket(dto, customer)
        return Response(
            {
                "message": "Support ticket created",
                "ticket_id": str(ticket.id),
                "ticket": SupportTicketSerializer(ticket).data,
            },
            status=status.HTTP_201_CREATED,
        )

    def list(self, request: Request) -> Response:
        query = TicketQueryDTO(
            status=request.query_params.get("status"),
            search=request.query_params.get("search"),
        )
        page = self.paginate_queryset(self._service.list_tickets(request.user, query))
        return self.get_paginated_response(SupportTicketSerializer(page, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        ticket = self._service.get_ticket(str(pk), request.user)
        return Response(
            {
                "ticket": SupportTicketSerializer(ticket).data,
                "messages": TicketMessageSerializer(
                    self._service.list_messages(ticket), many=True
                ).data,
            }
        )

    @action(detail=True, methods=["post"])
    def reply(self, request: Request, pk: str | None = None) -> Response:
        dto = ReplyDTO(message=request.data.get("message") or "")
        entry = self._service.reply(str(pk), dto, request.user)
        return Response(
            {"message": "Reply added", "reply": TicketMessageSerializer(entry).data},
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["put", "patch"], url_path="status")
    def update_status(self, request: Request, pk: str | None = None) -> Response:
        dto = TicketStatusDTO(status=request.data.get("status"))
        ticket = self._service.update_status(str(pk), dto)
        return Response({"message": "Status updated", "ticket": SupportTicketSerializer(ticket).data})
