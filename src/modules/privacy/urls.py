"""Privacy URL configuration."""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from modules.privacy.views import (
    AdminDataRightsViewSet,
    DataRightsViewSet,
    ExportDataView,
    PrivacySettingsView,
)

router = DefaultRouter(trailing_slash=True)
router.register("privacy/data-rights", DataRightsViewSet, basename="data-rights")
router.register("privacy/admin/data-rights", AdminDataRightsViewSet, basename="admin-data-rights")

urlpatterns = [
    path("privacy/export-data/", ExportDataView.as_view(), name="privacy-export"),
    path("privacy/settings/", PrivacySettingsView.as_view(), name="privacy-settings"),
    *router.urls,
]
