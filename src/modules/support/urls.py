"""Support URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.support.views import SupportTicketViewSet

router = DefaultRouter(trailing_slash=True)
router.register("support/tickets", SupportTicketViewSet, basename="support-ticket")

urlpatterns = router.urls
