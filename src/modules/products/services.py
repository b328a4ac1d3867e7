"""Catalog service layer (Use Cases).

Orchestrates business logic for products, stock and reviews, delegating
persistence to the injected repositories.

Business rules enforced here:
- SKU must be unique.
- ``decrease`` stock operations clamp at zero; ``set`` rejects negatives.
- Stock held by other checkout sessions is not available for sale.
- One review per customer per product; ``verified_purchase`` only when a
  delivered order contains the product.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.products.constants import ProductStatus, StockOperation
from modules.products.exceptions import (
    AlreadyMarkedHelpful,
    DuplicateReview,
    InsufficientStock,
    InvalidStockOperation,
    ProductAlreadyExists,
    ProductNotFound,
    ReviewNotFound,
)
from modules.products.models import Product, Review

if TYPE_CHECKING:
    from modules.accounts.models import Customer
    from modules.products.dtos import (
        CreateProductDTO,
        CreateReviewDTO,
        ProductQueryDTO,
        StockRequestDTO,
        StockUpdateDTO,
        UpdateProductDTO,
    )
    from modules.products.repositories.interfaces import (
        IProductRepository,
        IReviewRepository,
    )

logger = structlog.get_logger(__name__)


class ProductService:
    """Application service for catalog and inventory use-cases.

    Receives an ``IProductRepository`` via constructor injection (DIP).
    """

    def __init__(self, repository: IProductRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Catalog commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_product(self, dto: CreateProductDTO) -> Product:
        """Raises:
        ProductAlreadyExists: if SKU is already taken.
        """
        log = logger.bind(sku=dto.sku)

        if self._repo.get_by_sku(dto.sku):
            log.warning("product.duplicate_sku")
            raise ProductAlreadyExists(f"SKU '{dto.sku}' already registered.")

        product = Product(**dto.model_dump())
        product = self._repo.save(product)
        log.info("product.created", product_id=str(product.id))
        return product

    @transaction.atomic
    def update_product(self, id: str, dto: UpdateProductDTO) -> Product:
        product = self._get_or_raise(id)
        for field, value in dto.model_dump(exclude_none=True).items():
            setattr(product, field, value)

        product = self._repo.save(product)
        logger.info("product.updated", product_id=str(id))
        return product

    @transaction.atomic
    def delete_product(self, id: str) -> None:
        self._get_or_raise(id)
        self._repo.delete(id)
        logger.info("product.soft_deleted", product_id=str(id))

    @transaction.atomic
    def update_stock(self, id: str, dto: StockUpdateDTO) -> Product:
        """Apply a ``set``/``increase``/``decrease`` stock operation.

        Deltas default to 1 when no quantity is given.

        Raises:
            ProductNotFound: unknown product.
            InvalidStockOperation: ``set`` without a quantity.
        """
        product = self._repo.get_for_update(id)
        if not product:
            raise ProductNotFound(f"Product {id} not found.")

        current = product.stock_quantity
        if dto.operation == StockOperation.INCREASE:
            new_quantity = current + (dto.quantity or 1)
        elif dto.operation == StockOperation.DECREASE:
            new_quantity = max(0, current - (dto.quantity or 1))
        else:
            if dto.quantity is None:
                raise InvalidStockOperation("Quantity is required for a set operation.")
            new_quantity = dto.quantity

        product.set_stock(new_quantity, settings.LOW_STOCK_THRESHOLD)
        product = self._repo.save(product)
        logger.info(
            "product.stock_updated",
            product_id=str(id),
            operation=str(dto.operation),
            previous=current,
            stock_quantity=new_quantity,
        )
        return product

    # ------------------------------------------------------------------
    # Catalog queries
    # ------------------------------------------------------------------

    def list_products(self, query: ProductQueryDTO) -> Dict[str, Any]:
        """Filtered, sorted and sliced catalog.

        Returns ``items``, ``total``, ``limit`` and ``offset``.
        """
        filters = {
            "search": query.search,
            "min_price": query.min_price,
            "max_price": query.max_price,
            "collection": query.collection,
        }
        if not query.include_inactive:
            filters["status"] = ProductStatus.ACTIVE
        queryset = self._repo.list({k: v for k, v in filters.items() if v not in (None, "")})
        queryset = queryset.order_by(*query.ordering)

        total = queryset.count()
        end = query.offset + query.limit if query.limit else None
        return {
            "items": list(queryset[query.offset:end]),
            "total": total,
            "limit": query.limit,
            "offset": query.offset,
        }

    def get_product(self, id: str) -> Product:
        return self._get_or_raise(id)

    def _get_or_raise(self, id: str) -> Product:
        product = self._repo.get_by_id(id)
        if not product:
            raise ProductNotFound(f"Product {id} not found.")
        return product

    # ------------------------------------------------------------------
    # Availability and reservations
    # ------------------------------------------------------------------

    def available_quantity(self, product: Product, session_id: Optional[str] = None) -> int:
        """On-hand stock minus what other sessions currently hold."""
        held = self._repo.reserved_quantity(str(product.id), exclude_session=session_id)
        return max(0, product.stock_quantity - held)

    def check_stock(self, dto: StockRequestDTO) -> Dict[str, Any]:
        checks: List[Dict[str, Any]] = []
        for item in dto.items:
            product = self._repo.get_by_id(str(item.product_id))
            if not product:
                checks.append(
                    {
                        "product_id": str(item.product_id),
                        "available": 0,
                        "requested": item.quantity,
                        "in_stock": False,
                        "reason": "Product not found",
                    }
                )
                continue
            available = self.available_quantity(product, dto.session_id)
            in_stock = product.is_active and available >= item.quantity
            reason = None
            if not product.is_active:
                reason = "Product is not available"
            elif not in_stock:
                reason = "Insufficient stock"
            checks.append(
                {
                    "product_id": str(product.id),
                    "name": product.name,
                    "available": available,
                    "requested": item.quantity,
                    "in_stock": in_stock,
                    "reason": reason,
                }
            )
        return {
            "all_available": all(check["in_stock"] for check in checks),
            "items": checks,
        }

    @transaction.atomic
    def reserve_stock(self, dto: StockRequestDTO) -> Dict[str, Any]:
        """Replace the session's holds with new ones.

        Raises:
            InvalidStockOperation: no ``session_id``.
            InsufficientStock: an item cannot be held; no hold is created.
        """
        if not dto.session_id:
            raise InvalidStockOperation("session_id is required to reserve stock.")

        log = logger.bind(session_id=dto.session_id)
        self._repo.release_session(dto.session_id)

        products = self._repo.lock_many(str(item.product_id) for item in dto.items)
        shortages = []
        for item in dto.items:
            product = products.get(str(item.product_id))
            if product is None or not product.is_active:
                shortages.append(
                    {"product_id": str(item.product_id), "available": 0, "requested": item.quantity}
                )
                continue
            available = self.available_quantity(product, dto.session_id)
            if available < item.quantity:
                shortages.append(
                    {
                        "product_id": str(product.id),
                        "available": available,
                        "requested": item.quantity,
                    }
                )
        if shortages:
            log.warning("stock.reservation_rejected", shortages=len(shortages))
            raise InsufficientStock("Some items are no longer available.", items=shortages)

        expires_at = timezone.now() + timedelta(minutes=settings.STOCK_RESERVATION_MINUTES)
        reserved = []
        for item in dto.items:
            product = products[str(item.product_id)]
            self._repo.create_reservation(product, item.quantity, dto.session_id, expires_at)
            reserved.append({"product_id": str(product.id), "quantity": item.quantity})

        log.info("stock.reserved", item_count=len(reserved), expires_at=expires_at.isoformat())
        return {"session_id": dto.session_id, "expires_at": expires_at, "items": reserved}

    @transaction.atomic
    def release_reservation(self, session_id: str) -> int:
        released = self._repo.release_session(session_id)
        logger.info("stock.reservation_released", session_id=session_id, released=released)
        return released

    @transaction.atomic
    def release_expired_reservations(self) -> int:
        released = self._repo.release_expired()
        if released:
            logger.info("stock.expired_reservations_released", released=released)
        return released


class ReviewService:
    def __init__(
        self,
        review_repository: IReviewRepository,
        product_repository: IProductRepository,
    ) -> None:
        self._repo = review_repository
        self._product_repo = product_repository

    def _product(self, product_id: str) -> Product:
        product = self._product_repo.get_by_id(product_id)
        if not product:
            raise ProductNotFound(f"Product {product_id} not found.")
        return product

    def list_reviews(self, product_id: str):
        self._product(product_id)
        return self._repo.list_for_product(product_id)

    @transaction.atomic
    def create_review(self, product_id: str, customer: Customer, dto: CreateReviewDTO) -> Review:
        """Raises:
        ProductNotFound: unknown product.
        DuplicateReview: the customer already reviewed this product.
        """
        product = self._product(product_id)
        if self._repo.exists_for(str(product.id), str(customer.id)):
            raise DuplicateReview()

        review = Review(
            product=product,
            customer=customer,
            rating=dto.rating,
            title=dto.title,
            comment=dto.comment,
            verified_purchase=self._repo.has_delivered_purchase(str(product.id), str(customer.id)),
        )
        review = self._repo.save(review)
        logger.info(
            "review.created",
            review_id=str(review.id),
            product_id=str(product.id),
            rating=review.rating,
            verified_purchase=review.verified_purchase,
        )
        return review

    @transaction.atomic
    def mark_helpful(self, review_id: str, user_id: int) -> Review:
        review = self._repo.get_by_id(review_id)
        if not review:
            raise ReviewNotFound()
        if not self._repo.add_helpful_vote(review, user_id):
            raise AlreadyMarkedHelpful()
        return review

    def rating_stats(self, product_id: str) -> Dict[str, Any]:
        self._product(product_id)
        return self._repo.rating_stats(product_id)
