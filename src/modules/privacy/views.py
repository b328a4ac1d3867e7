"""Privacy API views: data-subject requests and consent settings."""

from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.accounts.repositories.django_repository import CustomerDjangoRepository
from modules.accounts.services import AccountService
from modules.core.requests import dto_kwargs
from modules.privacy.dtos import (
    DataRequestQueryDTO,
    DataRightsRequestDTO,
    PrivacySettingsDTO,
    UpdateDataRequestDTO,
)
from modules.privacy.repositories.django_repository import PrivacyDjangoRepository
from modules.privacy.serializers import (
    DataRightsRequestListSerializer,
    DataRightsRequestSerializer,
    PrivacySettingsSerializer,
)
from modules.privacy.services import PrivacyService


def _privacy_service() -> PrivacyService:
    return PrivacyService(PrivacyDjangoRepository())


def _current_customer(request: Request):
    return AccountService(CustomerDjangoRepository()).get_customer_for_user(request.user)


class DataRightsViewSet(GenericViewSet):
    """Public submission plus the signed-in customer's own requests."""

    serializer_class = DataRightsRequestSerializer

    def get_permissions(self):
        if self.action == "create":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get_throttles(self):
        self.throttle_scope = "support" if self.action == "create" else None
        return super().get_throttles()

    def create(self, request: Request) -> Response:
        """POST /api/v1/privacy/data-rights/"""
        data = dict(request.data.items())
        data.setdefault("request_type", data.get("requestType"))
        data.setdefault("description", data.get("reason"))
        dto = DataRightsRequestDTO(**dto_kwargs(data, DataRightsRequestDTO))
        customer = AccountService(CustomerDjangoRepository()).find_customer_for_user(request.user)
        entry = _privacy_service().submit_request(dto, customer)
        return Response(
            {
                "message": "Data rights request submitted successfully",
                "request_id": entry.reference,
                "request": DataRightsRequestListSerializer(entry).data,
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["get"])
    def mine(self, request: Request) -> Response:
        """GET /api/v1/privacy/data-rights/mine/"""
        requests = _privacy_service().my_requests(_current_customer(request))
        return Response({"requests": DataRightsRequestListSerializer(requests, many=True).data})


class AdminDataRightsViewSet(GenericViewSet):
    permission_classes = [IsAdminUser]
    serializer_class = DataRightsRequestSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = _privacy_service()

    def list(self, request: Request) -> Response:
        params = request.query_params
        query = DataRequestQueryDTO(
            status=params.get("status") or None,
            request_type=params.get("request_type") or params.get("type") or None,
        )
        page = self.paginate_queryset(self._service.list_requests(query))
        return self.get_paginated_response(DataRightsRequestListSerializer(page, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        return Response(DataRightsRequestSerializer(self._service.get_request(str(pk))).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        data = dict(request.data.items())
        data.setdefault("admin_response", data.get("response"))
        dto = UpdateDataRequestDTO(**dto_kwargs(data, UpdateDataRequestDTO))
        entry = self._service.update_request(str(pk), dto, request.user)
        return Response(
            {
                "message": "Request updated successfully",
                "request": DataRightsRequestSerializer(entry).data,
            }
        )

    @action(detail=True, methods=["post"])
    def process(self, request: Request, pk: str | None = None) -> Response:
        entry = self._service.process_request(str(pk), request.user)
        return Response(
            {
                "message": "Data rights request processed successfully",
                "request": DataRightsRequestSerializer(entry).data,
            }
        )

    @action(detail=False, methods=["get"])
    def stats(self, request: Request) -> Response:
        return Response({"stats": self._service.stats()})


class ExportDataView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        """POST /api/v1/privacy/export-data/"""
        data = _privacy_service().export_my_data(_current_customer(request))
        return Response({"message": "Data exported successfully", "data": data})


class PrivacySettingsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        settings = _privacy_service().get_settings(_current_customer(request))
        return Response({"settings": PrivacySettingsSerializer(settings).data})

    def put(self, request: Request) -> Response:
        payload = request.data.get("settings", request.data)
        if not isinstance(payload, dict):
            payload = {}
        dto = PrivacySettingsDTO(**dto_kwargs(payload, PrivacySettingsDTO))
        settings = _privacy_service().update_settings(_current_customer(request), dto)
        return Response(
            {
                "message": "Privacy settings updated successfully",
                "settings": PrivacySettingsSerializer(settings).data,
            }
        )

    def patch(self, request: Request) -> Response:
        return self.put(request)
