"""Customer repository interface.

The Customer aggregate owns its addresses, so address persistence is part
of the same contract.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.accounts.models import Address, Customer


class ICustomerRepository(IRepository["Customer"]):
    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> "models.QuerySet[Customer]":
        """Customers annotated with ``order_count`` and ``total_spent``."""

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[Customer]:
        """Look-up by (case-insensitive) email."""

    @abstractmethod
    def get_by_user_id(self, user_id: int) -> Optional[Customer]:
        """Profile bound to a Django auth user."""

    @abstractmethod
    def get_by_verification_token(self, token: str) -> Optional[Customer]:
        """Profile holding an email verification token."""

    @abstractmethod
    def get_by_reset_token(self, token: str) -> Optional[Customer]:
        """Profile holding a password reset token."""

    @abstractmethod
    def purchase_stats(self, customer_id: str) -> Dict[str, Any]:
        """``order_count``, ``total_spent`` and ``last_order_at``."""

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    @abstractmethod
    def list_addresses(self, customer_id: str) -> "models.QuerySet[Address]":
        """Addresses of a customer, default first."""

    @abstractmethod
    def get_address(self, customer_id: str, address_id: str) -> Optional[Address]:
        """Address scoped to its owner."""

    @abstractmethod
    def save_address(self, address: Address) -> Address:
        """Persist an address, clearing other defaults when it is the default."""

    @abstractmethod
    def delete_address(self, address: Address) -> None:
        """Delete an address and promote another one if it was the default."""
