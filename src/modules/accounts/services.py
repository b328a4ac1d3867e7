"""Account service layer (Use Cases).

Covers registration, email verification, JWT login, profile management,
password changes/resets and the address book.

Business rules enforced here:
- Email is unique (409).
- Login is refused until the email is verified (staff users excepted).
- Verification tokens live ``EMAIL_VERIFICATION_HOURS``; reset tokens
  ``PASSWORD_RESET_HOURS``. Both are single use.
- ``forgot_password`` never reveals whether an email is registered.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog
from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.models import update_last_login
from django.db import transaction
from django.db.models import Q
from rest_framework_simplejwt.tokens import RefreshToken

from modules.accounts import notifications
from modules.accounts.events import CustomerEmailVerified, CustomerRegistered
from modules.accounts.exceptions import (
    AddressNotFound,
    CustomerAlreadyExists,
    CustomerNotFound,
    EmailAlreadyVerified,
    EmailNotVerified,
    IncorrectPassword,
    InvalidCredentials,
    InvalidToken,
)
from modules.accounts.models import Address, Customer

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser
    from django.db.models import QuerySet

    from modules.accounts.dtos import (
        AddressDTO,
        ChangePasswordDTO,
        LoginDTO,
        RegisterDTO,
        ResetPasswordDTO,
        UpdateAddressDTO,
        UpdateProfileDTO,
    )
    from modules.accounts.repositories.interfaces import ICustomerRepository

logger = structlog.get_logger(__name__)

User = get_user_model()


class AccountService:
    """Application service for the Customer aggregate.

    Receives an ``ICustomerRepository`` via constructor injection (DIP).
    """

    def __init__(self, repository: ICustomerRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Registration / verification
    # ------------------------------------------------------------------

    @transaction.atomic
    def register(self, dto: RegisterDTO) -> Customer:
        """Create the auth user and profile, then email a verification link.

        Raises:
            CustomerAlreadyExists: email already registered.
        """
        log = logger.bind(email_domain=dto.email.split("@")[-1])

        if self._repo.get_by_email(dto.email) or User.objects.filter(username=dto.email).exists():
            log.warning("account.duplicate_email")
            raise CustomerAlreadyExists()

        user = User.objects.create_user(
            username=dto.email,
            email=dto.email,
            password=dto.password,
            first_name=dto.first_name,
            last_name=dto.last_name,
        )
        customer = Customer(
            user=user,
            email=dto.email,
            first_name=dto.first_name,
            last_name=dto.last_name,
        )
        token = customer.issue_verification_token(settings.EMAIL_VERIFICATION_HOURS)
        customer.add_domain_event(
            CustomerRegistered(
                aggregate_id=customer.id,
                email=customer.email,
                first_name=customer.first_name,
            )
        )
        customer = self._repo.save(customer)

        notifications.send_verification_email(customer, token)
        log.info("account.registered", customer_id=str(customer.id))
        return customer

    @transaction.atomic
    def verify_email(self, token: str) -> Customer:
        """Raises:
        InvalidToken: unknown or expired token.
        """
        customer = self._repo.get_by_verification_token(token)
        if not customer or not Customer.token_is_live(customer.verification_expires_at):
            logger.warning("account.verification_rejected")
            raise InvalidToken("Invalid or expired verification token.")

        customer.mark_email_verified()
        customer.add_domain_event(
            CustomerEmailVerified(aggregate_id=customer.id, email=customer.email)
        )
        self._repo.save(customer)
        logger.info("account.email_verified", customer_id=str(customer.id))
        return customer

    @transaction.atomic
    def resend_verification(self, email: str) -> None:
        customer = self._repo.get_by_email(email)
        if not customer or customer.is_deleted:
            raise CustomerNotFound()
        if customer.email_verified:
            raise EmailAlreadyVerified()

        token = customer.issue_verification_token(settings.EMAIL_VERIFICATION_HOURS)
        self._repo.save(customer)
        notifications.send_verification_email(customer, token)
        logger.info("account.verification_resent", customer_id=str(customer.id))

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, dto: LoginDTO) -> Dict[str, Any]:
        """Authenticate and issue a SimpleJWT token pair.

        Raises:
            InvalidCredentials: wrong email/password or inactive account.
            EmailNotVerified: customer has not confirmed the email yet.
        """
        user = authenticate(username=dto.email, password=dto.password)
        if user is None:
            logger.warning("account.login_failed")
            raise InvalidCredentials()

        customer = self._repo.get_by_user_id(user.pk)
        if customer is not None and not customer.is_active:
            raise InvalidCredentials()
        if customer is not None and not customer.email_verified and not user.is_staff:
            logger.info("account.login_unverified", customer_id=str(customer.id))
            raise EmailNotVerified()

        refresh = RefreshToken.for_user(user)
        refresh["email"] = user.email or user.get_username()
        refresh["is_admin"] = user.is_staff
        update_last_login(None, user)

        logger.info("account.logged_in", user_id=user.pk, is_admin=user.is_staff)
        return {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
            "user": user,
            "customer": customer,
        }

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_customer_for_user(self, user: AbstractBaseUser) -> Customer:
        """Raises:
        CustomerNotFound: the user has no storefront profile.
        """
        customer = self._repo.get_by_user_id(user.pk)
        if not customer:
            raise CustomerNotFound("No customer profile for this account.")
        return customer

    def find_customer_for_user(self, user: AbstractBaseUser) -> Optional[Customer]:
        if not user or not user.is_authenticated:
            return None
        return self._repo.get_by_user_id(user.pk)

    @transaction.atomic
    def update_profile(self, customer: Customer, dto: UpdateProfileDTO) -> Customer:
        for field in ("first_name", "last_name", "phone"):
            value = getattr(dto, field)
            if value is not None:
                setattr(customer, field, value)

        user = customer.user
        user.first_name = customer.first_name
        user.last_name = customer.last_name
        user.save(update_fields=["first_name", "last_name"])

        customer = self._repo.save(customer)
        logger.info("account.profile_updated", customer_id=str(customer.id))
        return customer

    @transaction.atomic
    def change_password(self, user: AbstractBaseUser, dto: ChangePasswordDTO) -> None:
        if not user.check_password(dto.current_password):
            logger.warning("account.password_change_rejected", user_id=user.pk)
            raise IncorrectPassword()
        user.set_password(dto.new_password)
        user.save(update_fields=["password"])
        logger.info("account.password_changed", user_id=user.pk)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    @transaction.atomic
    def forgot_password(self, email: str) -> None:
        customer = self._repo.get_by_email(email)
        if not customer or customer.is_deleted or customer.is_anonymized:
            logger.info("account.reset_requested_unknown_email")
            return

        token = customer.issue_reset_token(settings.PASSWORD_RESET_HOURS)
        self._repo.save(customer)
        notifications.send_password_reset_email(customer, token)
        logger.info("account.reset_requested", customer_id=str(customer.id))

    @transaction.atomic
    def reset_password(self, dto: ResetPasswordDTO) -> None:
        customer = self._repo.get_by_reset_token(dto.token)
        if not customer or not Customer.token_is_live(customer.reset_expires_at):
            raise InvalidToken("Invalid or expired reset token.")

        user = customer.user
        user.set_password(dto.new_password)
        user.save(update_fields=["password"])

        customer.reset_token = None
        customer.reset_expires_at = None
        self._repo.save(customer)
        logger.info("account.password_reset", customer_id=str(customer.id))

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def list_addresses(self, customer: Customer) -> QuerySet[Address]:
        return self._repo.list_addresses(str(customer.id))

    def get_address(self, customer: Customer, address_id: str) -> Address:
        address = self._repo.get_address(str(customer.id), address_id)
        if not address:
            raise AddressNotFound()
        return address

    def add_address(self, customer: Customer, dto: AddressDTO) -> Address:
        address = Address(customer=customer, **dto.model_dump())
        return self._repo.save_address(address)

    def update_address(
        self, customer: Customer, address_id: str, dto: UpdateAddressDTO
    ) -> Address:
        address = self.get_address(customer, address_id)
        for field, value in dto.model_dump(exclude_none=True).items():
            setattr(address, field, value)
        return self._repo.save_address(address)

    def set_default_address(self, customer: Customer, address_id: str) -> Address:
        address = self.get_address(customer, address_id)
        address.is_default = True
        return self._repo.save_address(address)

    def delete_address(self, customer: Customer, address_id: str) -> None:
        address = self.get_address(customer, address_id)
        self._repo.delete_address(address)

    # ------------------------------------------------------------------
    # Admin queries
    # ------------------------------------------------------------------

    def list_customers(self, search: Optional[str] = None) -> QuerySet[Customer]:
        queryset = self._repo.list()
        if search:
            queryset = queryset.filter(
                Q(email__icontains=search)
                | Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
            )
        return queryset

    def get_customer(self, id: str) -> Customer:
        customer = self._repo.get_by_id(id)
        if not customer:
            raise CustomerNotFound(f"Customer {id} not found.")
        return customer

    def customer_stats(self, id: str) -> Dict[str, Any]:
        customer = self.get_customer(id)
        stats = self._repo.purchase_stats(str(customer.id))
        return {
            "customer_id": str(customer.id),
            "email": customer.email,
            "member_since": customer.created_at,
            "email_verified": customer.email_verified,
            "address_count": self._repo.list_addresses(str(customer.id)).count(),
            **stats,
        }
