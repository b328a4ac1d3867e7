"""Privacy repository contract.

Besides request persistence this owns the cross-module reads and writes a
data-subject request needs: the personal data export and the erasure of a
customer's identifying data.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from django.db import models

    from modules.accounts.models import Customer
    from modules.privacy.models import DataRightsRequest, PrivacySettings


class IPrivacyRepository(IRepository["DataRightsRequest"]):
    @abstractmethod
    def list_for_subject(
        self, customer_id: Any, email: str
    ) -> "models.QuerySet[DataRightsRequest]": ...

    @abstractmethod
    def get_customer_by_email(self, email: str) -> Optional[Customer]: ...

    @abstractmethod
    def get_settings(self, customer: Customer) -> PrivacySettings:
        """Return the customer's settings, creating the defaults on first use."""

    @abstractmethod
    def save_settings(self, settings: PrivacySettings) -> PrivacySettings: ...

    @abstractmethod
    def export_customer_data(self, customer: Customer) -> Dict[str, Any]: ...

    @abstractmethod
    def anonymize_customer(self, customer: Customer) -> None:
        """Replace identifying data; orders are kept for accounting."""

    @abstractmethod
    def stats(self, stale_before: datetime) -> Dict[str, Any]: ...
