"""Django ORM implementations of the catalog repositories.

Methods return ``None`` for missing rows instead of raising; the Service
Layer decides how to translate a missing entity into a domain error.
Every product write drops the cached storefront listing.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import structlog
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.db import IntegrityError, models, transaction
from django.db.models.functions import Coalesce
from django.utils import timezone

from modules.core.outbox import record_domain_events
from modules.products.constants import PRODUCT_LIST_CACHE_KEY, RATING_MAX, RATING_MIN
from modules.products.filters import ProductFilter
from modules.products.models import Product, Review, ReviewHelpfulVote, StockReservation
from modules.products.repositories.interfaces import IProductRepository, IReviewRepository

logger = structlog.get_logger(__name__)


def invalidate_product_list_cache() -> None:
    cache.delete(PRODUCT_LIST_CACHE_KEY)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Returns ``None`` for non-existent, deleted or invalid IDs."""
        try:
            return Product.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> "models.QuerySet[Product]":
        """Examples of valid filters::

            {"search": "dragon", "min_price": "10"}
            {"collection": "vintage", "status": "active"}
        """
        queryset = Product.objects.alive()
        if filters:
            queryset = ProductFilter(data=filters, queryset=queryset).qs
        return queryset

    @transaction.atomic
    def save(self, entity: Product) -> Product:
        entity.save()
        event_count = record_domain_events(entity, topic="products")
        invalidate_product_list_cache()
        logger.info(
            "product.saved",
            product_id=str(entity.id),
            sku=entity.sku,
            event_count=event_count,
        )
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Soft-delete a product; ``False`` if it does not exist."""
        product = self.get_by_id(id)
        if not product:
            return False
        product.delete()
        invalidate_product_list_cache()
        logger.info("product.soft_deleted", product_id=str(id))
        return True

    def get_by_sku(self, sku: str) -> Optional[Product]:
        return Product.objects.filter(sku=sku.strip().upper()).first()

    def get_for_update(self, id: str) -> Optional[Product]:
        try:
            return Product.objects.select_for_update().alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def lock_many(self, ids: Iterable[str]) -> Dict[str, Product]:
        products = (
            Product.objects.select_for_update()
            .filter(id__in=[str(i) for i in ids])
            .order_by("id")
        )
        return {str(product.id): product for product in products}

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------

    def reserved_quantity(self, product_id: str, exclude_session: Optional[str] = None) -> int:
        queryset = StockReservation.objects.active().filter(product_id=product_id)
        if exclude_session:
            queryset = queryset.exclude(session_id=exclude_session)
        return queryset.aggregate(total=Coalesce(models.Sum("quantity"), 0))["total"]

    def create_reservation(
        self, product: Product, quantity: int, session_id: str, expires_at: datetime
    ) -> StockReservation:
        return StockReservation.objects.create(
            product=product,
            quantity=quantity,
            session_id=session_id,
            expires_at=expires_at,
        )

    def session_reservations(self, session_id: str) -> List[StockReservation]:
        return list(
            StockReservation.objects.active()
            .filter(session_id=session_id)
            .select_related("product")
        )

    def release_session(self, session_id: str) -> int:
        return (
            StockReservation.objects.active()
            .filter(session_id=session_id)
            .update(released_at=timezone.now(), updated_at=timezone.now())
        )

    def release_expired(self) -> int:
        now = timezone.now()
        return StockReservation.objects.expired().update(released_at=now, updated_at=now)

    def active_reservation_count(self) -> int:
        return StockReservation.objects.active().count()


class ReviewDjangoRepository(IReviewRepository):
    def list_for_product(self, product_id: str) -> "models.QuerySet[Review]":
        return (
            Review.objects.filter(product_id=product_id)
            .select_related("customer")
            .order_by("-created_at")
        )

    def get_by_id(self, id: str) -> Optional[Review]:
        try:
            return Review.objects.select_related("customer").filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def exists_for(self, product_id: str, customer_id: str) -> bool:
        return Review.objects.filter(product_id=product_id, customer_id=customer_id).exists()

    def has_delivered_purchase(self, product_id: str, customer_id: str) -> bool:
        from modules.orders.constants import OrderStatus
        from modules.orders.models import OrderItem

        return OrderItem.objects.filter(
            product_id=product_id,
            order__customer_id=customer_id,
            order__status=OrderStatus.DELIVERED,
        ).exists()

    @transaction.atomic
    def save(self, review: Review) -> Review:
        review.save()
        logger.info("review.saved", review_id=str(review.id), product_id=str(review.product_id))
        return review

    def add_helpful_vote(self, review: Review, user_id: int) -> bool:
        try:
            with transaction.atomic():
                ReviewHelpfulVote.objects.create(review=review, user_id=user_id)
        except IntegrityError:
            return False
        review.helpful_count = review.helpful_votes.count()
        review.save(update_fields=["helpful_count", "updated_at"])
        return True

    def rating_stats(self, product_id: str) -> Dict[str, Any]:
        queryset = Review.objects.filter(product_id=product_id)
        aggregates = queryset.aggregate(
            total_reviews=models.Count("id"),
            average_rating=models.Avg("rating"),
        )
        counts = {
            row["rating"]: row["n"]
            for row in queryset.order_by().values("rating").annotate(n=models.Count("id"))
        }
        average = aggregates["average_rating"]
        return {
            "total_reviews": aggregates["total_reviews"],
            "average_rating": round(float(average), 2) if average is not None else 0.0,
            "distribution": {
                str(star): counts.get(star, 0) for star in range(RATING_MAX, RATING_MIN - 1, -1)
            },
        }
