"""Domain events for the Accounts bounded context."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class CustomerRegistered(DomainEvent):
    """Raised when a new storefront account is created."""

    email: str = ""
    first_name: str = ""


@dataclass(frozen=True)
class CustomerEmailVerified(DomainEvent):
    email: str = ""
