"""Marketing API views (back-office, plus the public newsletter signup and
the tracking and unsubscribe links of campaign emails)."""

from __future__ import annotations

import base64
from urllib.parse import urlparse

from django.conf import settings
from django.http import HttpResponse, HttpResponseRedirect
from django.utils.http import url_has_allowed_host_and_scheme
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.core.requests import dto_kwargs
from modules.marketing.dtos import (
    AutomationRuleDTO,
    CampaignDTO,
    DiscountCodeDTO,
    EmailSignupDTO,
    EmailTemplateDTO,
    UnsubscribeDTO,
    UpdateAutomationRuleDTO,
    UpdateCampaignDTO,
    UpdateDiscountCodeDTO,
    UpdateEmailTemplateDTO,
    ValidateDiscountDTO,
)
from modules.marketing.repositories.django_repository import (
    AutomationDjangoRepository,
    CampaignDjangoRepository,
    DiscountDjangoRepository,
)
from modules.marketing.serializers import (
    AutomationRuleSerializer,
    CampaignSerializer,
    DiscountCodeSerializer,
    DiscountValidationSerializer,
    EmailSignupSerializer,
    EmailTemplateSerializer,
)
from modules.marketing.services import (
    AutomationService,
    CampaignService,
    DiscountService,
    marketing_overview,
)

# ---------------------------------------------------------------------------
# Campaigns
# ---------------------------------------------------------------------------


class CampaignViewSet(GenericViewSet):
    permission_classes = [IsAdminUser]
    serializer_class = CampaignSerializer
    pagination_class = None

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = CampaignService(CampaignDjangoRepository())

    def list(self, request: Request) -> Response:
        campaigns = self._service.list_campaigns()
        return Response({"campaigns": CampaignSerializer(campaigns, many=True).data})

    def create(self, request: Request) -> Response:
        dto = CampaignDTO(**dto_kwargs(request.data, CampaignDTO))
        campaign = self._service.create_campaign(dto, actor=request.user)
        return Response(CampaignSerializer(campaign).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        return Response(CampaignSerializer(self._service.get_campaign(str(pk))).data)

    def update(self, request: Request, pk: str | None = None) -> Response:
        dto = UpdateCampaignDTO(**dto_kwargs(request.data, UpdateCampaignDTO))
        campaign = self._service.update_campaign(str(pk), dto)
        return Response(CampaignSerializer(campaign).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        self._service.delete_campaign(str(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"])
    def send(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/marketing/campaigns/{pk}/send/"""
        result = self._service.send_campaign(str(pk))
        return Response(
            {"message": "Campaign queued for sending", **result},
            status=status.HTTP_202_ACCEPTED,
        )

    @action(detail=True, methods=["get"])
    def analytics(self, request: Request, pk: str | None = None) -> Response:
        return Response({"analytics": self._service.analytics(str(pk))})


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------


class DiscountCodeViewSet(GenericViewSet):
    serializer_class = DiscountCodeSerializer
    pagination_class = None

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = DiscountService(DiscountDjangoRepository())

    def get_permissions(self):
        if self.action == "validate":
            return [IsAuthenticated()]
        return [IsAdminUser()]

    def list(self, request: Request) -> Response:
        discounts = self._service.list_discounts()
        return Response({"discounts": DiscountCodeSerializer(discounts, many=True).data})

    def create(self, request: Request) -> Response:
        dto = DiscountCodeDTO(**dto_kwargs(request.data, DiscountCodeDTO))
        discount = self._service.create_discount(dto)
        return Response(DiscountCodeSerializer(discount).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        return Response(DiscountCodeSerializer(self._service.get_discount(str(pk))).data)

    def update(self, request: Request, pk: str | None = None) -> Response:
        dto = UpdateDiscountCodeDTO(**dto_kwargs(request.data, UpdateDiscountCodeDTO))
        discount = self._service.update_discount(str(pk), dto)
        return Response(DiscountCodeSerializer(discount).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        self._service.delete_discount(str(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["post"])
    def validate(self, request: Request) -> Response:
        """POST /api/v1/marketing/discounts/validate/ ``{code, order_amount}``"""
        data = request.data
        dto = ValidateDiscountDTO(
            code=data.get("code") or "",
            order_amount=data.get("order_amount", data.get("orderAmount")),
        )
        return Response(DiscountValidationSerializer(self._service.validate(dto)).data)


# ---------------------------------------------------------------------------
# Automation and templates
# ---------------------------------------------------------------------------


class AutomationRuleViewSet(GenericViewSet):
    permission_classes = [IsAdminUser]
    serializer_class = AutomationRuleSerializer
    pagination_class = None

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = AutomationService(AutomationDjangoRepository())

    def list(self, request: Request) -> Response:
        rules = self._service.list_rules()
        return Response({"rules": AutomationRuleSerializer(rules, many=True).data})

    def create(self, request: Request) -> Response:
        dto = AutomationRuleDTO(**dto_kwargs(request.data, AutomationRuleDTO))
        rule = self._service.create_rule(dto)
        return Response(AutomationRuleSerializer(rule).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        return Response(AutomationRuleSerializer(self._service.get_rule(str(pk))).data)

    def update(self, request: Request, pk: str | None = None) -> Response:
        dto = UpdateAutomationRuleDTO(**dto_kwargs(request.data, UpdateAutomationRuleDTO))
        rule = self._service.update_rule(str(pk), dto)
        return Response(AutomationRuleSerializer(rule).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        self._service.delete_rule(str(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"])
    def toggle(self, request: Request, pk: str | None = None) -> Response:
        rule = self._service.toggle_rule(str(pk))
        return Response(AutomationRuleSerializer(rule).data)

    @action(detail=False, methods=["get"])
    def stats(self, request: Request) -> Response:
        return Response({"rules": self._service.rule_stats()})


class EmailTemplateViewSet(GenericViewSet):
    permission_classes = [IsAdminUser]
    serializer_class = EmailTemplateSerializer
    pagination_class = None

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = AutomationService(AutomationDjangoRepository())

    def list(self, request: Request) -> Response:
        templates = self._service.list_templates(request.query_params.get("category"))
        return Response({"templates": EmailTemplateSerializer(templates, many=True).data})

    def create(self, request: Request) -> Response:
        dto = EmailTemplateDTO(**dto_kwargs(request.data, EmailTemplateDTO))
        template = self._service.create_template(dto)
        return Response(EmailTemplateSerializer(template).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        return Response(EmailTemplateSerializer(self._service.get_template(str(pk))).data)

    def update(self, request: Request, pk: str | None = None) -> Response:
        dto = UpdateEmailTemplateDTO(**dto_kwargs(request.data, UpdateEmailTemplateDTO))
        template = self._service.update_template(str(pk), dto)
        return Response(EmailTemplateSerializer(template).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        self._service.delete_template(str(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Signups and overview
# ---------------------------------------------------------------------------


class EmailSignupViewSet(GenericViewSet):
    """``POST`` is public (newsletter form); listing is staff only."""

    serializer_class = EmailSignupSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = CampaignService(CampaignDjangoRepository())

    def get_permissions(self):
        if self.action == "create":
            return [AllowAny()]
        return [IsAdminUser()]

    def get_throttles(self):
        self.throttle_scope = "signup" if self.action == "create" else None
        return super().get_throttles()

    def list(self, request: Request) -> Response:
        page = self.paginate_queryset(self._service.list_signups())
        return self.get_paginated_response(EmailSignupSerializer(page, many=True).data)

    def create(self, request: Request) -> Response:
        dto = EmailSignupDTO(**dto_kwargs(request.data, EmailSignupDTO))
        signup = self._service.subscribe(dto)
        return Response(
            {"message": "Subscribed successfully", "signup": EmailSignupSerializer(signup).data},
            status=status.HTTP_201_CREATED,
        )


class MarketingOverviewView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request: Request) -> Response:
        """GET /api/v1/marketing/stats/"""
        return Response(
            marketing_overview(CampaignDjangoRepository(), DiscountDjangoRepository())
        )


# ---------------------------------------------------------------------------
# Tracking and unsubscribe (links inside campaign emails)
# ---------------------------------------------------------------------------

# 1x1 transparent GIF
TRACKING_PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")


class TrackOpenView(APIView):
    """GET /api/v1/marketing/track/{token}/open/ (the image in the email)."""

    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request: Request, token: str) -> HttpResponse:
        CampaignService(CampaignDjangoRepository()).track_open(str(token))
        response = HttpResponse(TRACKING_PIXEL, content_type="image/gif")
        response["Cache-Control"] = "no-store"
        return response


class TrackClickView(APIView):
    """GET /api/v1/marketing/track/{token}/click/?url=...

    Redirects to ``url`` when it points at the storefront, otherwise to the
    storefront home page.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request: Request, token: str) -> HttpResponseRedirect:
        CampaignService(CampaignDjangoRepository()).track_click(str(token))
        target = request.query_params.get("url", "")
        if not url_has_allowed_host_and_scheme(
            target, allowed_hosts={urlparse(settings.FRONTEND_URL).netloc}
        ):
            target = settings.FRONTEND_URL
        return HttpResponseRedirect(target)


class UnsubscribeView(APIView):
    """POST /api/v1/marketing/unsubscribe/ ``{token, reason}``"""

    permission_classes = [AllowAny]
    throttle_scope = "signup"

    def post(self, request: Request) -> Response:
        dto = UnsubscribeDTO(**dto_kwargs(request.data, UnsubscribeDTO))
        entry = CampaignService(CampaignDjangoRepository()).unsubscribe(dto)
        return Response({"message": "Unsubscribed successfully", "email": entry.email})
