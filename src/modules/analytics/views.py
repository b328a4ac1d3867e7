"""Admin reporting endpoints under ``/api/v1/analytics/``."""

from __future__ import annotations

from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import ViewSet

from modules.analytics.dtos import ReportRangeDTO
from modules.analytics.repositories.django_repository import AnalyticsDjangoRepository
from modules.analytics.services import AnalyticsService


def _period(request: Request) -> ReportRangeDTO:
    return ReportRangeDTO(range=request.query_params.get("range"))


class AnalyticsViewSet(ViewSet):
    permission_classes = [IsAdminUser]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = AnalyticsService(AnalyticsDjangoRepository())

    def list(self, request: Request) -> Response:
        """GET /api/v1/analytics/?range=30d (full dashboard)"""
        return Response(self._service.dashboard(_period(request)))

    @action(detail=False, methods=["get"])
    def sales(self, request: Request) -> Response:
        return Response(self._service.sales(_period(request)))

    @action(detail=False, methods=["get"])
    def customers(self, request: Request) -> Response:
        return Response(self._service.customers(_period(request)))

    @action(detail=False, methods=["get"])
    def inventory(self, request: Request) -> Response:
        return Response(self._service.inventory())

    @action(detail=False, methods=["get"])
    def dashboard(self, request: Request) -> Response:
        return Response(self._service.dashboard(_period(request)))

    @action(detail=False, methods=["get"])
    def realtime(self, request: Request) -> Response:
        return Response(self._service.realtime())

    @action(detail=False, methods=["get"])
    def summary(self, request: Request) -> Response:
        return Response(self._service.summary())

    @action(detail=False, methods=["get"], url_path=r"products/(?P<product_id>[^/.]+)")
    def product(self, request: Request, product_id: str | None = None) -> Response:
        """GET /api/v1/analytics/products/{product_id}/"""
        return Response(self._service.product(str(product_id), _period(request)))
