"""Integration tests for the catalog, stock and review endpoints.

Covers:
- Public listing shape, filters and the cached default listing.
- Staff-only writes: create 201 / duplicate 409 / customer 403, update, delete.
- Stock operations and their aliases.
- check-stock, reserve (201 / 409) and release for anonymous carts.
- Reviews list/create/stats and the helpful vote.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest
from django.core.cache import cache

from modules.orders.constants import OrderStatus
from modules.orders.models import Order
from modules.products.constants import PRODUCT_LIST_CACHE_KEY, ProductStatus

pytestmark = pytest.mark.integration

PRODUCTS_URL = "/api/v1/products/"

NEW_PRODUCT = {
    "sku": "dim-010",
    "name": "Dimoo Retro",
    "price": "18.50",
    "stock_quantity": 12,
    "collection": "Dimoo",
}


# ===========================================================================
# Listing
# ===========================================================================


class TestListProducts:
    def test_public_listing(self, api_client, product):
        response = api_client.get(PRODUCTS_URL)

        assert response.status_code == 200
        data = response.json()
        assert [p["sku"] for p in data["products"]] == ["MON-001"]
        assert data["products"][0]["price"] == "29.99"
        assert data["pagination"] == {"total": 1, "limit": None, "offset": 0}

    def test_default_listing_is_cached(self, api_client, product):
        api_client.get(PRODUCTS_URL)
        assert cache.get(PRODUCT_LIST_CACHE_KEY) is not None

    def test_filtered_listing_is_not_cached(self, api_client, product):
        api_client.get(PRODUCTS_URL, {"search": "zimomo"})
        assert cache.get(PRODUCT_LIST_CACHE_KEY) is None

    def test_write_invalidates_cache(self, api_client, admin_client, product):
        api_client.get(PRODUCTS_URL)

        admin_client.post(PRODUCTS_URL, NEW_PRODUCT, format="json")

        assert cache.get(PRODUCT_LIST_CACHE_KEY) is None
        skus = {p["sku"] for p in api_client.get(PRODUCTS_URL).json()["products"]}
        assert skus == {"MON-001", "DIM-010"}

    def test_camel_case_sorting_and_paging(self, api_client, make_product):
        make_product(sku="LOW", price=Decimal("5.00"))
        make_product(sku="HIGH", price=Decimal("50.00"))

        data = api_client.get(
            PRODUCTS_URL, {"sortBy": "price", "sortOrder": "desc", "limit": 1}
        ).json()

        assert [p["sku"] for p in data["products"]] == ["HIGH"]
        assert data["pagination"]["total"] == 2

    def test_inactive_only_visible_to_staff(self, api_client, admin_client, make_product):
        make_product(sku="GONE", status=ProductStatus.INACTIVE)

        public = api_client.get(PRODUCTS_URL, {"include_inactive": "true"}).json()
        staff = admin_client.get(PRODUCTS_URL, {"include_inactive": "true"}).json()

        assert public["pagination"]["total"] == 0
        assert staff["pagination"]["total"] == 1

    def test_retrieve_unknown(self, api_client):
        response = api_client.get(f"{PRODUCTS_URL}{uuid4()}/")
        assert response.status_code == 404
        assert response.json()["errors"][0]["code"] == "product_not_found"


# ===========================================================================
# Staff writes
# ===========================================================================


class TestProductAdmin:
    def test_create(self, admin_client):
        response = admin_client.post(PRODUCTS_URL, NEW_PRODUCT, format="json")

        assert response.status_code == 201
        assert response.json()["sku"] == "DIM-010"

    def test_customer_cannot_create(self, auth_client):
        response = auth_client.post(PRODUCTS_URL, NEW_PRODUCT, format="json")
        assert response.status_code == 403

    def test_anonymous_cannot_create(self, api_client):
        response = api_client.post(PRODUCTS_URL, NEW_PRODUCT, format="json")
        assert response.status_code == 401

    def test_missing_name_returns_400(self, admin_client):
        response = admin_client.post(
            PRODUCTS_URL, {"sku": "X-1", "price": "10.00"}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["attr"] == "name"

    def test_patch(self, admin_client, product):
        response = admin_client.patch(
            f"{PRODUCTS_URL}{product.id}/", {"price": "31.00"}, format="json"
        )
        assert response.status_code == 200
        assert response.json()["price"] == "31.00"

    def test_delete_hides_product(self, admin_client, api_client, product):
        response = admin_client.delete(f"{PRODUCTS_URL}{product.id}/")

        assert response.status_code == 204
        assert api_client.get(f"{PRODUCTS_URL}{product.id}/").status_code == 404


class TestStockEndpoint:
    def test_set_with_alias(self, admin_client, product):
        response = admin_client.put(
            f"{PRODUCTS_URL}{product.id}/stock/", {"stock": 3}, format="json"
        )
        assert response.status_code == 200
        assert response.json()["stock_quantity"] == 3

    def test_decrease(self, admin_client, product):
        response = admin_client.patch(
            f"{PRODUCTS_URL}{product.id}/stock/",
            {"operation": "decrease", "quantity": 5},
            format="json",
        )
        assert response.json()["stock_quantity"] == product.stock_quantity - 5

    def test_set_without_quantity(self, admin_client, product):
        response = admin_client.put(f"{PRODUCTS_URL}{product.id}/stock/", {}, format="json")
        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "invalid_stock_operation"


# ===========================================================================
# Availability
# ===========================================================================


class TestAvailability:
    def test_check_stock(self, api_client, product):
        response = api_client.post(
            f"{PRODUCTS_URL}check-stock/",
            {"items": [{"product_id": str(product.id), "quantity": 2}]},
            format="json",
        )
        assert response.status_code == 200
        assert response.json()["all_available"] is True

    def test_reserve_and_release(self, api_client, product):
        reserve = api_client.post(
            f"{PRODUCTS_URL}reserve/",
            {"session_id": "cart-1", "items": [{"product_id": str(product.id), "quantity": 2}]},
            format="json",
        )
        assert reserve.status_code == 201
        assert reserve.json()["session_id"] == "cart-1"
        assert reserve.json()["expires_at"]

        release = api_client.post(
            f"{PRODUCTS_URL}release/", {"session_id": "cart-1"}, format="json"
        )
        assert release.json() == {"released": 1}

    def test_reserve_more_than_stock_returns_409(self, api_client, make_product):
        scarce = make_product(stock_quantity=1)
        response = api_client.post(
            f"{PRODUCTS_URL}reserve/",
            {"session_id": "cart-1", "items": [{"product_id": str(scarce.id), "quantity": 2}]},
            format="json",
        )
        assert response.status_code == 409
        assert response.json()["errors"][0]["code"] == "insufficient_stock"

    def test_empty_items_return_400(self, api_client):
        response = api_client.post(
            f"{PRODUCTS_URL}check-stock/", {"items": []}, format="json"
        )
        assert response.status_code == 400


# ===========================================================================
# Reviews
# ===========================================================================


REVIEW = {"rating": 4, "title": "Cute", "comment": "Smaller than expected but lovely."}


class TestReviews:
    def test_create_and_list(self, auth_client, api_client, product):
        created = auth_client.post(f"{PRODUCTS_URL}{product.id}/reviews/", REVIEW, format="json")

        assert created.status_code == 201
        assert created.json()["user_name"] == "Ana"
        assert created.json()["verified_purchase"] is False

        listed = api_client.get(f"{PRODUCTS_URL}{product.id}/reviews/").json()
        assert [r["title"] for r in listed["reviews"]] == ["Cute"]

    def test_verified_purchase(self, auth_client, product, order):
        Order.objects.filter(pk=order.pk).update(status=OrderStatus.DELIVERED)

        created = auth_client.post(f"{PRODUCTS_URL}{product.id}/reviews/", REVIEW, format="json")
        assert created.json()["verified_purchase"] is True

    def test_anonymous_cannot_review(self, api_client, product):
        response = api_client.post(f"{PRODUCTS_URL}{product.id}/reviews/", REVIEW, format="json")
        assert response.status_code == 401

    def test_second_review_returns_409(self, auth_client, product):
        auth_client.post(f"{PRODUCTS_URL}{product.id}/reviews/", REVIEW, format="json")
        response = auth_client.post(f"{PRODUCTS_URL}{product.id}/reviews/", REVIEW, format="json")
        assert response.status_code == 409
        assert response.json()["errors"][0]["code"] == "duplicate_review"

    def test_invalid_rating(self, auth_client, product):
        response = auth_client.post(
            f"{PRODUCTS_URL}{product.id}/reviews/", {**REVIEW, "rating": 9}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["attr"] == "rating"

    def test_stats(self, auth_client, api_client, product):
        auth_client.post(f"{PRODUCTS_URL}{product.id}/reviews/", REVIEW, format="json")

        stats = api_client.get(f"{PRODUCTS_URL}{product.id}/reviews/stats/").json()["stats"]

        assert stats["total_reviews"] == 1
        assert stats["average_rating"] == 4.0
        assert stats["distribution"]["4"] == 1

    def test_helpful(self, auth_client, other_client, product):
        review = auth_client.post(
            f"{PRODUCTS_URL}{product.id}/reviews/", REVIEW, format="json"
        ).json()

        first = other_client.post(f"/api/v1/reviews/{review['id']}/helpful/")
        second = other_client.post(f"/api/v1/reviews/{review['id']}/helpful/")

        assert first.json() == {"message": "Review marked as helpful", "helpful_count": 1}
        assert second.status_code == 400
        assert second.json()["errors"][0]["code"] == "already_marked_helpful"
