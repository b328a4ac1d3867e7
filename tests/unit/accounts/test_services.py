"""Unit tests for AccountService.

Covers:
- register: creates user + profile, emails a verification link, rejects
  duplicates, records ``CustomerRegistered``.
- verify_email / resend_verification: token lifecycle and expiry.
- login: bad credentials, unverified customers, staff exemption.
- change/forgot/reset password flows.
- Address book default handling.
- Admin customer search and purchase stats.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from django.core import mail
from freezegun import freeze_time

from modules.accounts.dtos import (
    AddressDTO,
    ChangePasswordDTO,
    LoginDTO,
    RegisterDTO,
    ResetPasswordDTO,
    UpdateProfileDTO,
)
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
from modules.accounts.models import Address
from modules.accounts.repositories.django_repository import CustomerDjangoRepository
from modules.accounts.services import AccountService
from modules.core.models import OutboxEvent

pytestmark = pytest.mark.unit

PASSWORD = "Str0ng!Pass"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def service():
    return AccountService(repository=CustomerDjangoRepository())


@pytest.fixture()
def registered(service):
    customer = service.register(
        RegisterDTO(email="new@example.com", password=PASSWORD, first_name="Nina")
    )
    mail.outbox.clear()
    return customer


def _address(**overrides) -> AddressDTO:
    data = {"name": "Ana Souza", "line1": "1 Main St", "city": "Portland", "zip_code": "97201"}
    data.update(overrides)
    return AddressDTO(**data)


# ===========================================================================
# Registration
# ===========================================================================


class TestRegister:
    def test_creates_user_and_unverified_customer(self, service):
        customer = service.register(
            RegisterDTO(email="new@example.com", password=PASSWORD, first_name="Nina")
        )

        assert customer.user.username == "new@example.com"
        assert customer.user.check_password(PASSWORD)
        assert customer.email_verified is False
        assert customer.verification_token

    def test_sends_verification_email(self, service, settings):
        customer = service.register(
            RegisterDTO(email="new@example.com", password=PASSWORD, first_name="Nina")
        )

        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.to == ["new@example.com"]
        assert message.subject == f"Verify your email - {settings.STORE_NAME}"
        assert customer.verification_token in message.body

    def test_records_registration_event(self, service):
        customer = service.register(
            RegisterDTO(email="new@example.com", password=PASSWORD, first_name="Nina")
        )
        event = OutboxEvent.objects.get(topic="accounts")
        assert event.event_type == "CustomerRegistered"
        assert event.aggregate_id == str(customer.id)

    def test_duplicate_email_rejected(self, service, customer):
        with pytest.raises(CustomerAlreadyExists):
            service.register(
                RegisterDTO(email=customer.email.upper(), password=PASSWORD, first_name="Ana")
            )


class TestVerifyEmail:
    def test_valid_token_verifies(self, service, registered):
        customer = service.verify_email(registered.verification_token)
        assert customer.email_verified is True
        assert customer.verification_token is None

    def test_unknown_token_rejected(self, service):
        with pytest.raises(InvalidToken):
            service.verify_email("nope")

    def test_expired_token_rejected(self, service, registered):
        later = registered.verification_expires_at + timedelta(minutes=1)
        with freeze_time(later):
            with pytest.raises(InvalidToken):
                service.verify_email(registered.verification_token)

    def test_resend_issues_new_token(self, service, registered):
        old_token = registered.verification_token
        service.resend_verification(registered.email)
        registered.refresh_from_db()
        assert registered.verification_token != old_token
        assert len(mail.outbox) == 1

    def test_resend_for_verified_customer_rejected(self, service, customer):
        with pytest.raises(EmailAlreadyVerified):
            service.resend_verification(customer.email)

    def test_resend_for_unknown_email_rejected(self, service):
        with pytest.raises(CustomerNotFound):
            service.resend_verification("ghost@example.com")


# ===========================================================================
# Login
# ===========================================================================


class TestLogin:
    def test_returns_token_pair(self, service, customer):
        result = service.login(LoginDTO(email=customer.email, password=PASSWORD))
        assert result["access"]
        assert result["refresh"]
        assert result["customer"] == customer

    def test_wrong_password(self, service, customer):
        with pytest.raises(InvalidCredentials):
            service.login(LoginDTO(email=customer.email, password="Wrong!Pass1"))

    def test_unverified_customer_blocked(self, service, registered):
        with pytest.raises(EmailNotVerified):
            service.login(LoginDTO(email=registered.email, password=PASSWORD))

    def test_deactivated_customer_blocked(self, service, customer):
        customer.is_active = False
        customer.save()
        with pytest.raises(InvalidCredentials):
            service.login(LoginDTO(email=customer.email, password=PASSWORD))

    def test_staff_without_profile_can_log_in(self, service, admin_user):
        result = service.login(LoginDTO(email=admin_user.email, password=PASSWORD))
        assert result["customer"] is None
        assert result["user"] == admin_user


# ===========================================================================
# Profile and passwords
# ===========================================================================


class TestProfile:
    def test_update_profile_syncs_user(self, service, customer):
        service.update_profile(customer, UpdateProfileDTO(first_name="Anna", phone="555-0100"))
        customer.user.refresh_from_db()
        assert customer.first_name == "Anna"
        assert customer.phone == "555-0100"
        assert customer.user.first_name == "Anna"

    def test_user_without_profile(self, service, admin_user):
        with pytest.raises(CustomerNotFound):
            service.get_customer_for_user(admin_user)
        assert service.find_customer_for_user(admin_user) is None

    def test_change_password(self, service, customer):
        service.change_password(
            customer.user,
            ChangePasswordDTO(current_password=PASSWORD, new_password="N3w!Password"),
        )
        customer.user.refresh_from_db()
        assert customer.user.check_password("N3w!Password")

    def test_change_password_requires_current(self, service, customer):
        with pytest.raises(IncorrectPassword):
            service.change_password(
                customer.user,
                ChangePasswordDTO(current_password="Wrong!1pass", new_password="N3w!Password"),
            )


class TestPasswordReset:
    def test_forgot_password_emails_token(self, service, customer, settings):
        service.forgot_password(customer.email)
        customer.refresh_from_db()
        assert customer.reset_token
        assert mail.outbox[0].subject == f"Reset your password - {settings.STORE_NAME}"

    def test_forgot_password_unknown_email_is_silent(self, service):
        service.forgot_password("ghost@example.com")
        assert mail.outbox == []

    def test_reset_password_consumes_token(self, service, customer):
        service.forgot_password(customer.email)
        customer.refresh_from_db()
        token = customer.reset_token

        service.reset_password(ResetPasswordDTO(token=token, new_password="R3set!Pass"))

        customer.refresh_from_db()
        customer.user.refresh_from_db()
        assert customer.reset_token is None
        assert customer.user.check_password("R3set!Pass")
        with pytest.raises(InvalidToken):
            service.reset_password(ResetPasswordDTO(token=token, new_password="R3set!Pass"))

    def test_expired_reset_token(self, service, customer):
        with freeze_time("2026-01-01 10:00:00"):
            service.forgot_password(customer.email)
        customer.refresh_from_db()
        with freeze_time("2026-01-01 11:00:01"):
            with pytest.raises(InvalidToken):
                service.reset_password(
                    ResetPasswordDTO(token=customer.reset_token, new_password="R3set!Pass")
                )


# ===========================================================================
# Addresses
# ===========================================================================


class TestAddresses:
    def test_first_address_becomes_default(self, service, customer):
        address = service.add_address(customer, _address())
        assert address.is_default is True

    def test_new_default_replaces_previous(self, service, customer):
        first = service.add_address(customer, _address(label="Home"))
        second = service.add_address(customer, _address(label="Work", is_default=True))
        first.refresh_from_db()
        assert second.is_default is True
        assert first.is_default is False

    def test_set_default(self, service, customer):
        first = service.add_address(customer, _address(label="Home"))
        second = service.add_address(customer, _address(label="Work"))
        service.set_default_address(customer, str(second.id))
        first.refresh_from_db()
        second.refresh_from_db()
        assert (first.is_default, second.is_default) == (False, True)

    def test_deleting_default_promotes_another(self, service, customer):
        first = service.add_address(customer, _address(label="Home"))
        second = service.add_address(customer, _address(label="Work"))
        service.delete_address(customer, str(first.id))
        second.refresh_from_db()
        assert second.is_default is True

    def test_other_customers_address_not_found(self, service, customer, other_customer):
        address = service.add_address(other_customer, _address())
        with pytest.raises(AddressNotFound):
            service.get_address(customer, str(address.id))

    def test_as_shipping_info(self, service, customer):
        address = service.add_address(customer, _address(state="OR"))
        assert address.as_shipping_info()["zip"] == "97201"
        assert Address.objects.count() == 1


# ===========================================================================
# Admin
# ===========================================================================


class TestAdminQueries:
    def test_search_by_name(self, service, customer, other_customer):
        results = list(service.list_customers(search="bruno"))
        assert results == [other_customer]

    def test_customer_stats(self, service, customer, order):
        stats = service.customer_stats(str(customer.id))
        assert stats["order_count"] == 1
        assert stats["total_spent"] == Decimal("59.98")
        assert stats["last_order_at"] is not None

    def test_unknown_customer(self, service):
        with pytest.raises(CustomerNotFound):
            service.get_customer("not-a-uuid")
