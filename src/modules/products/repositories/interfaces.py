"""Catalog repository interfaces.

``IProductRepository`` covers products and their stock holds;
``IReviewRepository`` covers reviews and helpful votes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product, Review, StockReservation


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[Product]":
        """List alive products matching ``ProductFilter`` parameters."""

    @abstractmethod
    def get_by_sku(self, sku: str) -> Optional[Product]:
        """Retrieve a product by SKU."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional["Product"]:
        """Retrieve a product with a row-level lock (SELECT FOR UPDATE).

        Used for stock changes by the catalog and the order service.
        Returns ``None`` if the product does not exist.
        """

    @abstractmethod
    def lock_many(self, ids: Iterable[str]) -> Dict[str, "Product"]:
        """Lock several products in primary-key order, keyed by ``str(id)``."""

    # Reservations

    @abstractmethod
    def reserved_quantity(self, product_id: str, exclude_session: Optional[str] = None) -> int:
        """Units held by active reservations, optionally ignoring one session."""

    @abstractmethod
    def create_reservation(
        self, product: Product, quantity: int, session_id: str, expires_at: datetime
    ) -> StockReservation:
        """Create a hold."""

    @abstractmethod
    def session_reservations(self, session_id: str) -> List[StockReservation]:
        """Active holds of a session."""

    @abstractmethod
    def release_session(self, session_id: str) -> int:
        """Release every active hold of a session; returns the count."""

    @abstractmethod
    def release_expired(self) -> int:
        """Release holds past their expiry; returns the count."""

    @abstractmethod
    def active_reservation_count(self) -> int:
        """Number of currently active holds."""


class IReviewRepository(ABC):
    @abstractmethod
    def list_for_product(self, product_id: str) -> "models.QuerySet[Review]":
        """Reviews of a product, newest first."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Review]:
        """Retrieve a review by primary key."""

    @abstractmethod
    def exists_for(self, product_id: str, customer_id: str) -> bool:
        """Whether the customer already reviewed the product."""

    @abstractmethod
    def has_delivered_purchase(self, product_id: str, customer_id: str) -> bool:
        """Whether a delivered order of the customer contains the product."""

    @abstractmethod
    def save(self, review: Review) -> Review:
        """Persist a review."""

    @abstractmethod
    def add_helpful_vote(self, review: Review, user_id: int) -> bool:
        """Record a vote; ``False`` when the user already voted."""

    @abstractmethod
    def rating_stats(self, product_id: str) -> Dict[str, Any]:
        """Average rating, count and per-star distribution."""
