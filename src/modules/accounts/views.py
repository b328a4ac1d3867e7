"""Account API views.

Authentication, profile, address book and the admin customer grid.
Domain and DTO validation errors propagate to
``modules.core.exceptions.api_exception_handler``.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.accounts.dtos import (
    AddressDTO,
    ChangePasswordDTO,
    EmailDTO,
    LoginDTO,
    RegisterDTO,
    ResetPasswordDTO,
    UpdateAddressDTO,
    UpdateProfileDTO,
)
from modules.accounts.models import Customer
from modules.accounts.repositories.django_repository import CustomerDjangoRepository
from modules.accounts.serializers import (
    AddressSerializer,
    AdminCustomerSerializer,
    CustomerSerializer,
    CustomerStatsSerializer,
)
from modules.accounts.services import AccountService
from modules.core.pagination import LimitOffsetResultsPagination


def _account_service() -> AccountService:
    return AccountService(repository=CustomerDjangoRepository())


def _user_payload(user, customer: Customer | None) -> dict:
    if customer is not None:
        return CustomerSerializer(customer).data
    return {
        "id": None,
        "email": user.email or user.get_username(),
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email_verified": True,
        "is_admin": user.is_staff,
    }


class AuthViewSet(GenericViewSet):
    """Public authentication endpoints under ``/api/v1/auth/``."""

    permission_classes = [AllowAny]
    authentication_classes: list = []
    throttle_scope = "auth"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = _account_service()

    @action(detail=False, methods=["post"])
    def register(self, request: Request) -> Response:
        """POST /api/v1/auth/register/"""
        data = request.data
        dto = RegisterDTO(
            email=data.get("email", ""),
            password=data.get("password", ""),
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
        )
        customer = self._service.register(dto)
        return Response(
            {
                "message": "Registration successful. Check your email to verify your account.",
                "customer": CustomerSerializer(customer).data,
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["post"])
    def login(self, request: Request) -> Response:
        """POST /api/v1/auth/login/"""
        dto = LoginDTO(
            email=request.data.get("email", ""),
            password=request.data.get("password", ""),
        )
        result = self._service.login(dto)
        return Response(
            {
                "access": result["access"],
                "refresh": result["refresh"],
                "user": _user_payload(result["user"], result["customer"]),
            }
        )

    @action(detail=False, methods=["post"], url_path="verify-email")
    def verify_email(self, request: Request) -> Response:
        """POST /api/v1/auth/verify-email/"""
        customer = self._service.verify_email(str(request.data.get("token", "")))
        return Response(
            {
                "message": "Email verified. You can now log in.",
                "customer": CustomerSerializer(customer).data,
            }
        )

    @action(detail=False, methods=["post"], url_path="resend-verification")
    def resend_verification(self, request: Request) -> Response:
        """POST /api/v1/auth/resend-verification/"""
        dto = EmailDTO(email=request.data.get("email", ""))
        self._service.resend_verification(dto.email)
        return Response({"message": "Verification email sent."})

    @action(detail=False, methods=["post"], url_path="forgot-password")
    def forgot_password(self, request: Request) -> Response:
        """POST /api/v1/auth/forgot-password/"""
        dto = EmailDTO(email=request.data.get("email", ""))
        self._service.forgot_password(dto.email)
        return Response(
            {"message": "If that email is registered, a reset link has been sent."}
        )

    @action(detail=False, methods=["post"], url_path="reset-password")
    def reset_password(self, request: Request) -> Response:
        """POST /api/v1/auth/reset-password/"""
        dto = ResetPasswordDTO(
            token=str(request.data.get("token", "")),
            new_password=request.data.get("new_password", ""),
        )
        self._service.reset_password(dto)
        return Response({"message": "Password has been reset."})


class ProfileView(APIView):
    """GET/PUT/PATCH /api/v1/auth/me/"""

    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        customer = _account_service().find_customer_for_user(request.user)
        return Response(_user_payload(request.user, customer))

    def put(self, request: Request) -> Response:
        service = _account_service()
        customer = service.get_customer_for_user(request.user)
        dto = UpdateProfileDTO(
            first_name=request.data.get("first_name"),
            last_name=request.data.get("last_name"),
            phone=request.data.get("phone"),
        )
        customer = service.update_profile(customer, dto)
        return Response(CustomerSerializer(customer).data)

    def patch(self, request: Request) -> Response:
        return self.put(request)


class ChangePasswordView(APIView):
    """POST /api/v1/auth/change-password/"""

    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        dto = ChangePasswordDTO(
            current_password=request.data.get("current_password", ""),
            new_password=request.data.get("new_password", ""),
        )
        _account_service().change_password(request.user, dto)
        return Response({"message": "Password changed."})


class AddressViewSet(GenericViewSet):
    """Address book of the authenticated customer."""

    permission_classes = [IsAuthenticated]
    serializer_class = AddressSerializer
    pagination_class = None

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = _account_service()

    def _customer(self) -> Customer:
        return self._service.get_customer_for_user(self.request.user)

    def list(self, request: Request) -> Response:
        """GET /api/v1/addresses/"""
        addresses = self._service.list_addresses(self._customer())
        return Response(AddressSerializer(addresses, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        address = self._service.get_address(self._customer(), str(pk))
        return Response(AddressSerializer(address).data)

    def create(self, request: Request) -> Response:
        """POST /api/v1/addresses/"""
        data = request.data
        dto = AddressDTO(
            name=data.get("name", ""),
            line1=data.get("line1", ""),
            line2=data.get("line2", ""),
            city=data.get("city", ""),
            state=data.get("state", ""),
            zip_code=data.get("zip_code", ""),
            country=data.get("country", "US"),
            phone=data.get("phone", ""),
            label=data.get("label", ""),
            is_default=bool(data.get("is_default", False)),
        )
        address = self._service.add_address(self._customer(), dto)
        return Response(AddressSerializer(address).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, pk: str | None = None) -> Response:
        fields = UpdateAddressDTO.model_fields.keys()
        dto = UpdateAddressDTO(**{k: v for k, v in request.data.items() if k in fields})
        address = self._service.update_address(self._customer(), str(pk), dto)
        return Response(AddressSerializer(address).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        self._service.delete_address(self._customer(), str(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="set-default")
    def set_default(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/addresses/{pk}/set-default/"""
        address = self._service.set_default_address(self._customer(), str(pk))
        return Response(AddressSerializer(address).data)


class AdminCustomerViewSet(GenericViewSet):
    """Back-office customer grid (``is_staff`` only)."""

    permission_classes = [IsAdminUser]
    serializer_class = AdminCustomerSerializer
    pagination_class = LimitOffsetResultsPagination
    filter_backends = [OrderingFilter]
    ordering_fields = ["created_at", "email", "order_count", "total_spent"]
    ordering = ["-created_at"]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = _account_service()

    def get_queryset(self):
        return self._service.list_customers(search=self.request.query_params.get("search"))

    def list(self, request: Request) -> Response:
        """GET /api/v1/admin/customers/?search=&limit=&offset="""
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        customer = self._service.get_customer(str(pk))
        return Response(CustomerSerializer(customer).data)

    @action(detail=True, methods=["get"])
    def stats(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/admin/customers/{pk}/stats/"""
        stats = self._service.customer_stats(str(pk))
        return Response(CustomerStatsSerializer(stats).data)
