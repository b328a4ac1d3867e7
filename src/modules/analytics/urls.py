"""Analytics URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.analytics.views import AnalyticsViewSet

router = DefaultRouter(trailing_slash=True)
router.register("analytics", AnalyticsViewSet, basename="analytics")

urlpatterns = router.urls
