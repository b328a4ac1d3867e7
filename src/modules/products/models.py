"""Catalog, stock holds and product reviews.

Business rules implemented:
- SKU is unique and normalised to uppercase.
- Price must be greater than zero; stock can never go negative.
- Inactive products cannot be sold (enforced at service layer).
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
- A stock reservation holds quantity for one checkout session until it
  expires or is released; it never changes ``stock_quantity`` itself.
- One review per customer per product.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel, SoftDeleteModel
from modules.products.constants import RATING_MAX, RATING_MIN, ProductStatus
from modules.products.events import ProductLowStock
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


class Product(DomainEventMixin, SoftDeleteModel):
    """Product aggregate root.

    ``sku`` is normalised to uppercase on save to prevent visual duplicates
    (e.g. "sku-01" vs "SKU-01").
    """

    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    stock_quantity = models.PositiveIntegerField(default=0)
    collection = models.CharField(max_length=100, blank=True, default="")
    image_url = models.URLField(max_length=500, blank=True, default="")
    weight = models.DecimalField(
        max_digits=8, decimal_places=2, null=True, blank=True, help_text="Pounds"
    )
    dimensions = models.CharField(max_length=50, blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="products_status_idx"),
            models.Index(fields=["collection"], name="products_collection_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gt=0),
                name="products_price_positive",
            ),
        ]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def clean(self) -> None:
        super().clean()
        if self.sku:
            self.sku = self.sku.strip().upper()
        if self.price is not None and self.price <= 0:
            raise ValidationError({"price": "Price must be greater than zero."})
        if self.stock_quantity is not None and self.stock_quantity < 0:
            raise ValidationError(
                {"stock_quantity": "Stock quantity cannot be negative."}
            )

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE and not self.is_deleted

    def set_stock(self, quantity: int, low_stock_threshold: int) -> None:
        """Change the on-hand quantity, raising ``ProductLowStock`` when the
        new level crosses down into the low-stock band."""
        previous = self.stock_quantity
        self.stock_quantity = quantity
        if quantity <= low_stock_threshold < previous:
            self.add_domain_event(
                ProductLowStock(
                    aggregate_id=self.id,
                    sku=self.sku,
                    name=self.name,
                    stock_quantity=quantity,
                    threshold=low_stock_threshold,
                )
            )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "product_created",
                product_id=str(self.id),
                sku=self.sku,
                name=self.name,
            )

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"


class StockReservationQuerySet(models.QuerySet):
    def active(self) -> StockReservationQuerySet:
        return self.filter(released_at__isnull=True, expires_at__gt=timezone.now())

    def expired(self) -> StockReservationQuerySet:
        return self.filter(released_at__isnull=True, expires_at__lte=timezone.now())


class StockReservation(BaseModel):
    """Time-boxed hold on product quantity for a checkout session."""

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.CASCADE,
        related_name="reservations",
    )
    quantity = models.PositiveIntegerField()
    session_id = models.CharField(max_length=100, db_index=True)
    expires_at = models.DateTimeField()
    released_at = models.DateTimeField(null=True, blank=True, default=None)

    objects = StockReservationQuerySet.as_manager()

    class Meta:
        db_table = "stock_reservations"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["released_at", "expires_at"],
                name="reservations_active_idx",
            ),
        ]

    @property
    def is_active(self) -> bool:
        return self.released_at is None and self.expires_at > timezone.now()

    def __str__(self) -> str:
        return f"{self.session_id}: {self.quantity} x {self.product_id}"


class Review(BaseModel):
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.CASCADE,
        related_name="reviews",
    )
    customer = models.ForeignKey(
        "accounts.Customer",
        on_delete=models.CASCADE,
        related_name="reviews",
    )
    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(RATING_MIN), MaxValueValidator(RATING_MAX)]
    )
    title = models.CharField(max_length=100)
    comment = models.TextField(max_length=1000)
    verified_purchase = models.BooleanField(default=False)
    helpful_count = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "reviews"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "customer"],
                name="reviews_one_per_customer",
            ),
            models.CheckConstraint(
                condition=models.Q(rating__gte=RATING_MIN, rating__lte=RATING_MAX),
                name="reviews_rating_range",
            ),
        ]

    @property
    def owner_user_id(self) -> int:
        return self.customer.user_id

    def __str__(self) -> str:
        return f"{self.rating}* {self.title}"


class ReviewHelpfulVote(BaseModel):
    review = models.ForeignKey(
        "products.Review",
        on_delete=models.CASCADE,
        related_name="helpful_votes",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="review_votes",
    )

    class Meta:
        db_table = "review_helpful_votes"
        constraints = [
            models.UniqueConstraint(
                fields=["review", "user"],
                name="review_votes_one_per_user",
            ),
        ]
