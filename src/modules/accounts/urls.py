"""Account URL configuration."""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from modules.accounts.views import (
    AddressViewSet,
    AdminCustomerViewSet,
    AuthViewSet,
    ChangePasswordView,
    ProfileView,
)

router = DefaultRouter(trailing_slash=True)
router.register("auth", AuthViewSet, basename="auth")
router.register("addresses", AddressViewSet, basename="address")
router.register("admin/customers", AdminCustomerViewSet, basename="admin-customer")

urlpatterns = [
    path("auth/me/", ProfileView.as_view(), name="auth-me"),
    path("auth/change-password/", ChangePasswordView.as_view(), name="auth-change-password"),
] + router.urls
