"""Data-subject request handling.

Requests are submitted publicly and processed by staff.  Processing runs the
handler for the request type inside its own transaction: when the handler
fails the request is kept as ``rejected`` with the error in
``admin_response``, otherwise it is ``completed`` with the handler's result in
``response_data``.
"""

from __future__ import annotations

import json
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

import structlog
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.utils import timezone

from modules.core.exceptions import DomainError
from modules.privacy import notifications
from modules.privacy.constants import (
    FINAL_STATUSES,
    RESPONSE_DAYS,
    RequestStatus,
    RequestType,
)
from modules.privacy.exceptions import (
    DataRequestNotFound,
    RequestAlreadyProcessed,
    RequestProcessingFailed,
    SubjectNotFound,
)
from modules.privacy.models import DataRightsRequest, PrivacySettings

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

    from modules.accounts.models import Customer
    from modules.privacy.dtos import (
        DataRequestQueryDTO,
        DataRightsRequestDTO,
        PrivacySettingsDTO,
        UpdateDataRequestDTO,
    )
    from modules.privacy.repositories.interfaces import IPrivacyRepository

logger = structlog.get_logger(__name__)


class PrivacyService:
    def __init__(self, repository: IPrivacyRepository) -> None:
        self._repo = repository
        self._handlers: Dict[str, Callable[[DataRightsRequest], Dict[str, Any]]] = {
            RequestType.ACCESS: self._handle_access,
            RequestType.RECTIFICATION: self._handle_rectification,
            RequestType.ERASURE: self._handle_erasure,
            RequestType.PORTABILITY: self._handle_portability,
            RequestType.OBJECTION: self._handle_objection,
            RequestType.WITHDRAWAL: self._handle_withdrawal,
        }

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def submit_request(
        self, dto: DataRightsRequestDTO, customer: Optional[Customer] = None
    ) -> DataRightsRequest:
        request = self._repo.save(
            DataRightsRequest(
                customer=customer,
                email=dto.email,
                request_type=dto.request_type,
                description=dto.description,
            )
        )
        logger.info(
            "privacy.request_submitted",
            request_id=str(request.id),
            reference=request.reference,
            request_type=request.request_type,
        )
        notifications.send_request_confirmation(request)
        return request

    def list_requests(self, query: DataRequestQueryDTO):
        filters: Dict[str, Any] = {}
        if query.status:
            filters["status"] = query.status
        if query.request_type:
            filters["request_type"] = query.request_type
        return self._repo.list(filters)

    def my_requests(self, customer: Customer):
        return self._repo.list_for_subject(customer.id, customer.email)

    def get_request(self, request_id: str) -> DataRightsRequest:
        request = self._repo.get_by_id(request_id)
        if not request:
            raise DataRequestNotFound()
        return request

    def update_request(
        self, request_id: str, dto: UpdateDataRequestDTO, actor: AbstractBaseUser
    ) -> DataRightsRequest:
        request = self.get_request(request_id)
        request.status = dto.status
        if dto.admin_response is not None:
            request.admin_response = dto.admin_response
        if dto.status in FINAL_STATUSES:
            request.processed_at = timezone.now()
            request.processed_by = actor
        request = self._repo.save(request)
        logger.info(
            "privacy.request_updated", request_id=str(request.id), status=request.status
        )
        return request

    def process_request(self, request_id: str, actor: AbstractBaseUser) -> DataRightsRequest:
        """Run the request type's handler.

        Raises:
            RequestAlreadyProcessed: the request is completed or rejected.
            RequestProcessingFailed: the handler failed; the request is saved
                as ``rejected``.
        """
        request = self.get_request(request_id)
        if request.status in FINAL_STATUSES:
            raise RequestAlreadyProcessed()

        recipient = request.email
        request.status = RequestStatus.PROCESSING
        self._repo.save(request)
        log = logger.bind(request_id=str(request.id), request_type=request.request_type)

        try:
            with transaction.atomic():
                result = self._handlers[request.request_type](request)
        except DomainError as exc:
            request.status = RequestStatus.REJECTED
            request.admin_response = exc.detail
            request.processed_at = timezone.now()
            request.processed_by = actor
            self._repo.save(request)
            log.warning("privacy.request_rejected", error=exc.detail)
            raise RequestProcessingFailed(
                f"Failed to process data rights request: {exc.detail}"
            ) from exc

        request.status = RequestStatus.COMPLETED
        request.response_data = result
        request.processed_at = timezone.now()
        request.processed_by = actor
        request = self._repo.save(request)
        log.info("privacy.request_completed")
        notifications.send_request_completed(request, recipient)
        return request

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _subject(self, request: DataRightsRequest) -> Customer:
        customer = request.customer or self._repo.get_customer_by_email(request.email)
        if customer is None or customer.is_anonymized:
            raise SubjectNotFound()
        return customer

    def _handle_access(self, request: DataRightsRequest) -> Dict[str, Any]:
        export = self._repo.export_customer_data(self._subject(request))
        return {"message": "Personal data export prepared", "data": export}

    def _handle_rectification(self, request: DataRightsRequest) -> Dict[str, Any]:
        due = timezone.now() + timedelta(days=RESPONSE_DAYS)
        return {
            "message": (
                "Data rectification request received and will be reviewed "
                f"within {RESPONSE_DAYS} days"
            ),
            "estimated_completion": due.isoformat(),
        }

    def _handle_erasure(self, request: DataRightsRequest) -> Dict[str, Any]:
        customer = self._subject(request)
        self._repo.anonymize_customer(customer)
        return {
            "message": "Data has been anonymized in compliance with GDPR Article 17",
            "anonymized_at": customer.anonymized_at.isoformat(),
            "customer_id": str(customer.id),
        }

    def _handle_portability(self, request: DataRightsRequest) -> Dict[str, Any]:
        export = self._repo.export_customer_data(self._subject(request))
        return {
            "message": "Data export completed",
            "export_format": "JSON",
            "data_size": len(json.dumps(export, cls=DjangoJSONEncoder)),
            "data": export,
        }

    def _withdraw_consents(self, request: DataRightsRequest) -> None:
        settings = self._repo.get_settings(self._subject(request))
        settings.withdraw_all()
        self._repo.save_settings(settings)

    def _handle_objection(self, request: DataRightsRequest) -> Dict[str, Any]:
        self._withdraw_consents(request)
        return {
            "message": "Data processing objections have been recorded",
            "marketing_stopped": True,
            "analytics_stopped": True,
            "third_party_sharing_stopped": True,
        }

    def _handle_withdrawal(self, request: DataRightsRequest) -> Dict[str, Any]:
        self._withdraw_consents(request)
        return {
            "message": "All consents have been withdrawn",
            "consents_withdrawn": ["marketing", "analytics", "third_party_sharing"],
            "withdrawn_at": timezone.now().isoformat(),
        }

    # ------------------------------------------------------------------
    # Self service
    # ------------------------------------------------------------------

    @transaction.atomic
    def export_my_data(self, customer: Customer) -> Dict[str, Any]:
        export = self._repo.export_customer_data(customer)
        self._repo.save(
            DataRightsRequest(
                customer=customer,
                email=customer.email,
                request_type=RequestType.PORTABILITY,
                status=RequestStatus.COMPLETED,
                response_data={"message": "Data export completed", "export_format": "JSON"},
                processed_at=timezone.now(),
            )
        )
        logger.info("privacy.self_export", customer_id=str(customer.id))
        return export

    def get_settings(self, customer: Customer) -> PrivacySettings:
        return self._repo.get_settings(customer)

    def update_settings(self, customer: Customer, dto: PrivacySettingsDTO) -> PrivacySettings:
        settings = self._repo.get_settings(customer)
        for field, value in dto.model_dump(exclude_none=True).items():
            setattr(settings, field, value)
        settings = self._repo.save_settings(settings)
        logger.info("privacy.settings_updated", customer_id=str(customer.id))
        return settings

    def stats(self) -> Dict[str, Any]:
        return self._repo.stats(timezone.now() - timedelta(days=RESPONSE_DAYS))
