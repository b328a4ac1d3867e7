"""Catalog constants."""

from django.db import models


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class StockOperation(models.TextChoices):
    SET = "set", "Set"
    INCREASE = "increase", "Increase"
    DECREASE = "decrease", "Decrease"


# Public sort keys mapped to model fields; anything else falls back to newest first.
SORT_FIELDS: dict[str, str] = {
    "name": "name",
    "price": "price",
    "created_at": "created_at",
    "createdAt": "created_at",
    "stock": "stock_quantity",
    "stock_quantity": "stock_quantity",
}
DEFAULT_ORDERING = ("-created_at", "-id")

PRODUCT_LIST_CACHE_KEY = "products:list:default"

RATING_MIN = 1
RATING_MAX = 5
REVIEW_TITLE_MAX_LENGTH = 100
REVIEW_COMMENT_MAX_LENGTH = 1000
