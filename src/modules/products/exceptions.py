"""Product domain exceptions.

Raised by the Service Layer when business rules are violated and rendered
by the API exception handler.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from modules.core.exceptions import ConflictError, DomainError, NotFoundError


class ProductAlreadyExists(ConflictError):
    code = "sku_taken"
    default_detail = "A product with this SKU already exists."


class ProductNotFound(NotFoundError):
    """The requested product does not exist or has been soft-deleted."""

    code = "product_not_found"
    default_detail = "Product not found."


class InvalidStockOperation(DomainError):
    code = "invalid_stock_operation"
    default_detail = "Stock cannot be negative."


class InsufficientStock(ConflictError):
    """Requested quantities exceed what is available for sale."""

    code = "insufficient_stock"
    default_detail = "Insufficient stock."

    def __init__(
        self, detail: Optional[str] = None, items: Optional[List[Dict[str, Any]]] = None
    ) -> None:
        super().__init__(detail)
        self.items = items or []


class ReviewNotFound(NotFoundError):
    code = "review_not_found"
    default_detail = "Review not found."


class DuplicateReview(ConflictError):
    code = "duplicate_review"
    default_detail = "You have already reviewed this product."


class AlreadyMarkedHelpful(DomainError):
    code = "already_marked_helpful"
    default_detail = "You have already marked this review as helpful."
