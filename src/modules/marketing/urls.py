"""Marketing URL configuration."""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from modules.marketing.views import (
    AutomationRuleViewSet,
    CampaignViewSet,
    DiscountCodeViewSet,
    EmailSignupViewSet,
    EmailTemplateViewSet,
    MarketingOverviewView,
    TrackClickView,
    TrackOpenView,
    UnsubscribeView,
)

router = DefaultRouter(trailing_slash=True)
router.register("marketing/campaigns", CampaignViewSet, basename="campaign")
router.register("marketing/discounts", DiscountCodeViewSet, basename="discount")
router.register("marketing/automation", AutomationRuleViewSet, basename="automation-rule")
router.register("marketing/templates", EmailTemplateViewSet, basename="email-template")
router.register("marketing/signups", EmailSignupViewSet, basename="email-signup")

urlpatterns = [
    path("marketing/stats/", MarketingOverviewView.as_view(), name="marketing-stats"),
    path(
        "marketing/track/<uuid:token>/open/",
        TrackOpenView.as_view(),
        name="marketing-track-open",
    ),
    path(
        "marketing/track/<uuid:token>/click/",
        TrackClickView.as_view(),
        name="marketing-track-click",
    ),
    path("marketing/unsubscribe/", UnsubscribeView.as_view(), name="marketing-unsubscribe"),
    *router.urls,
]
