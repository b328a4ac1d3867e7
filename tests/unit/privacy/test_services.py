"""Unit tests for PrivacyService.

Covers:
- submit_request: reference, confirmation email.
- process_request per type: access/portability export, erasure,
  objection/withdrawal consent changes, rectification acknowledgement.
  Erasure also drops signups and campaign tracking rows.
- Failures are persisted as ``rejected``; final requests cannot be re-run.
- Settings defaults and partial updates; self-service export; stats.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone
from freezegun import freeze_time

from modules.accounts.models import Address
from modules.marketing.models import Campaign, EmailSignup, EmailTracking
from modules.privacy.constants import DataRetention, RequestStatus, RequestType
from modules.privacy.dtos import (
    DataRequestQueryDTO,
    DataRightsRequestDTO,
    PrivacySettingsDTO,
    UpdateDataRequestDTO,
)
from modules.privacy.exceptions import (
    DataRequestNotFound,
    RequestAlreadyProcessed,
    RequestProcessingFailed,
)
from modules.privacy.models import DataRightsRequest, PrivacySettings
from modules.privacy.repositories.django_repository import PrivacyDjangoRepository
from modules.privacy.services import PrivacyService

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def service():
    return PrivacyService(PrivacyDjangoRepository())


@pytest.fixture()
def submit(service):
    def _submit(request_type, email="ana@example.com", customer=None, description=""):
        return service.submit_request(
            DataRightsRequestDTO(email=email, request_type=request_type, description=description),
            customer,
        )

    return _submit


# ===========================================================================
# Submission and admin updates
# ===========================================================================


class TestSubmit:
    def test_reference_and_confirmation(self, submit):
        request = submit(RequestType.ACCESS)

        assert request.reference.startswith("DR-")
        assert request.status == RequestStatus.PENDING
        assert mail.outbox[0].to == ["ana@example.com"]
        assert request.reference in mail.outbox[0].body
        assert "within 30 days" in mail.outbox[0].body

    def test_lookup_by_reference(self, service, submit):
        request = submit(RequestType.ACCESS)
        assert service.get_request(request.reference) == request

    def test_unknown_request(self, service):
        with pytest.raises(DataRequestNotFound):
            service.get_request("DR-missing")

    def test_list_filters(self, service, submit):
        submit(RequestType.ACCESS)
        submit(RequestType.ERASURE)

        erasures = service.list_requests(DataRequestQueryDTO(request_type="erasure"))

        assert [r.request_type for r in erasures] == [RequestType.ERASURE]

    def test_my_requests_match_account_or_email(self, service, submit, customer):
        by_account = submit(RequestType.ACCESS, email="other@example.com", customer=customer)
        by_email = submit(RequestType.OBJECTION)
        submit(RequestType.ACCESS, email="stranger@example.com")

        assert {r.id for r in service.my_requests(customer)} == {by_account.id, by_email.id}

    def test_update_to_final_status_stamps_processor(self, service, submit, admin_user):
        request = submit(RequestType.RECTIFICATION)

        updated = service.update_request(
            str(request.id),
            UpdateDataRequestDTO(status="rejected", admin_response="Duplicate"),
            admin_user,
        )

        assert updated.admin_response == "Duplicate"
        assert updated.processed_by == admin_user
        assert updated.processed_at is not None


# ===========================================================================
# Processing
# ===========================================================================


class TestProcess:
    def test_access_exports_data(self, service, submit, customer, order, admin_user):
        request = submit(RequestType.ACCESS)
        mail.outbox.clear()

        processed = service.process_request(str(request.id), admin_user)

        assert processed.status == RequestStatus.COMPLETED
        assert processed.processed_by == admin_user
        data = processed.response_data["data"]
        assert data["personal_info"]["email"] == customer.email
        assert [o["order_number"] for o in data["orders"]] == [order.order_number]
        assert mail.outbox[0].to == [customer.email]
        assert "Personal data export prepared" in mail.outbox[0].body

    def test_portability_reports_size(self, service, submit, customer, admin_user):
        processed = service.process_request(str(submit(RequestType.PORTABILITY).id), admin_user)

        assert processed.response_data["export_format"] == "JSON"
        assert processed.response_data["data_size"] > 0

    def test_erasure_anonymises(self, service, submit, customer, order, admin_user):
        Address.objects.create(
            customer=customer, name="Ana", line1="1 Main St", city="Portland", zip_code="97201"
        )
        EmailSignup.objects.create(email=customer.email)
        campaign = Campaign.objects.create(name="Drop", subject="New", content="Hi")
        EmailTracking.objects.create(
            campaign=campaign, recipient=customer.email, sent_at=timezone.now()
        )
        request = submit(RequestType.ERASURE)
        mail.outbox.clear()

        processed = service.process_request(str(request.id), admin_user)

        customer.refresh_from_db()
        customer.user.refresh_from_db()
        order.refresh_from_db()
        assert processed.status == RequestStatus.COMPLETED
        assert customer.email == f"deleted_{customer.id}@deleted.com"
        assert customer.first_name == "Deleted"
        assert customer.is_active is False
        assert customer.anonymized_at is not None
        assert customer.user.is_active is False
        assert not customer.user.has_usable_password()
        assert order.shipping_info == {"name": "Deleted User", "address": "Deleted"}
        assert not Address.objects.filter(customer=customer).exists()
        assert not EmailSignup.objects.exists()
        assert not EmailTracking.objects.exists()
        assert PrivacySettings.objects.get(customer=customer).marketing_emails is False
        assert mail.outbox[0].to == ["ana@example.com"]

    @pytest.mark.parametrize("request_type", [RequestType.OBJECTION, RequestType.WITHDRAWAL])
    def test_consents_withdrawn(self, service, submit, customer, admin_user, request_type):
        service.process_request(str(submit(request_type).id), admin_user)

        settings = PrivacySettings.objects.get(customer=customer)
        assert settings.marketing_emails is False
        assert settings.analytics_tracking is False
        assert settings.third_party_sharing is False

    def test_rectification_acknowledged(self, service, submit, admin_user):
        processed = service.process_request(
            str(submit(RequestType.RECTIFICATION, email="nobody@example.com").id), admin_user
        )
        assert "within 30 days" in processed.response_data["message"]

    def test_unknown_subject_is_rejected(self, service, submit, admin_user):
        request = submit(RequestType.ERASURE, email="nobody@example.com")

        with pytest.raises(RequestProcessingFailed, match="No account found"):
            service.process_request(str(request.id), admin_user)

        request.refresh_from_db()
        assert request.status == RequestStatus.REJECTED
        assert request.admin_response == "No account found for this email."
        assert request.processed_by == admin_user

    def test_final_requests_are_not_reprocessed(self, service, submit, customer, admin_user):
        request = submit(RequestType.ACCESS)
        service.process_request(str(request.id), admin_user)

        with pytest.raises(RequestAlreadyProcessed):
            service.process_request(str(request.id), admin_user)

    def test_anonymised_subject_cannot_be_erased_twice(self, service, submit, customer, admin_user):
        service.process_request(str(submit(RequestType.ERASURE).id), admin_user)
        second = DataRightsRequest.objects.create(
            customer=customer, email="ana@example.com", request_type=RequestType.ACCESS
        )

        with pytest.raises(RequestProcessingFailed):
            service.process_request(str(second.id), admin_user)


# ===========================================================================
# Settings, self-service export and stats
# ===========================================================================


class TestSettings:
    def test_defaults_created_on_first_read(self, service, customer):
        settings = service.get_settings(customer)

        assert settings.marketing_emails is True
        assert settings.analytics_tracking is True
        assert settings.third_party_sharing is False
        assert settings.data_retention == DataRetention.ONE_YEAR

    def test_partial_update(self, service, customer):
        service.update_settings(customer, PrivacySettingsDTO(marketing_emails=False))
        settings = service.update_settings(
            customer, PrivacySettingsDTO(data_retention="30days")
        )

        assert settings.marketing_emails is False
        assert settings.data_retention == DataRetention.DAYS_30


class TestSelfExport:
    def test_export_records_request(self, service, customer, order):
        export = service.export_my_data(customer)

        assert export["personal_info"]["id"] == str(customer.id)
        record = DataRightsRequest.objects.get(customer=customer)
        assert record.request_type == RequestType.PORTABILITY
        assert record.status == RequestStatus.COMPLETED


class TestStats:
    def test_counts_and_overdue(self, service, submit, customer, admin_user):
        with freeze_time(timezone.now() - timedelta(days=40)):
            submit(RequestType.RECTIFICATION)
        request = submit(RequestType.ACCESS)
        service.process_request(str(request.id), admin_user)

        stats = service.stats()

        assert stats["total"] == 2
        assert stats["by_status"] == {"pending": 1, "completed": 1}
        assert stats["by_type"] == {"rectification": 1, "access": 1}
        assert stats["overdue_pending"] == 1
        assert stats["average_completion_days"] == 0.0
