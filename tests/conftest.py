from decimal import Decimal

import pytest

from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from modules.accounts.models import Customer
from modules.orders.dtos import CreateOrderDTO
from modules.orders.services import build_order_service
from modules.products.constants import ProductStatus
from modules.products.models import Product

User = get_user_model()

TEST_PASSWORD = "Str0ng!Pass"

SHIPPING_INFO = {
    "name": "Ana Souza",
    "address": "123 Main St",
    "city": "Portland",
    "state": "OR",
    "zip": "97201",
    "country": "US",
}


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Users and customers
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_customer():
    """Factory for a verified storefront customer with a login."""

    def _make(email="ana@example.com", first_name="Ana", last_name="Souza", **extra):
        user = User.objects.create_user(
            email,
            email=email,
            password=TEST_PASSWORD,
            first_name=first_name,
            last_name=last_name,
        )
        return Customer.objects.create(
            user=user,
            email=email,
            first_name=first_name,
            last_name=last_name,
            email_verified=extra.pop("email_verified", True),
            **extra,
        )

    return _make


@pytest.fixture()
def customer(make_customer):
    return make_customer()


@pytest.fixture()
def other_customer(make_customer):
    return make_customer(email="bruno@example.com", first_name="Bruno", last_name="Lima")


@pytest.fixture()
def admin_user():
    return User.objects.create_user(
        "admin@example.com",
        email="admin@example.com",
        password=TEST_PASSWORD,
        is_staff=True,
    )


@pytest.fixture()
def auth_client(customer):
    """APIClient authenticated as ``customer``."""
    client = APIClient()
    client.force_authenticate(user=customer.user)
    return client


@pytest.fixture()
def gateway_client(customer):
    """Like ``auth_client`` but returns 5xx responses instead of re-raising.

    drf-standardized-errors signals ``got_request_exception`` for server
    errors, which makes the test client raise by default.
    """
    client = APIClient(raise_request_exception=False)
    client.force_authenticate(user=customer.user)
    return client


@pytest.fixture()
def other_client(other_customer):
    client = APIClient()
    client.force_authenticate(user=other_customer.user)
    return client


@pytest.fixture()
def admin_client(admin_user):
    """APIClient authenticated as a staff user."""
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


# ---------------------------------------------------------------------------
# Catalog and orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_product():
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        defaults = {
            "sku": f"SKU-{counter['n']:03d}",
            "name": f"Collectible {counter['n']}",
            "price": Decimal("20.00"),
            "stock_quantity": 50,
            "collection": "The Monsters",
            "status": ProductStatus.ACTIVE,
        }
        defaults.update(overrides)
        return Product.objects.create(**defaults)

    return _make


@pytest.fixture()
def product(make_product):
    return make_product(sku="MON-001", name="Zimomo Exciting Macaron", price=Decimal("29.99"))


@pytest.fixture()
def make_order():
    """Place an order through the order service.

    ``items`` is a list of ``(product, quantity)`` pairs.
    """

    def _make(customer, items, **extra):
        dto = CreateOrderDTO(
            items=[{"product_id": p.id, "quantity": q} for p, q in items],
            shipping_info=extra.pop("shipping_info", SHIPPING_INFO),
            **extra,
        )
        return build_order_service().create_order(customer, dto, actor=customer.user)

    return _make


@pytest.fixture()
def order(make_order, customer, product):
    return make_order(customer, [(product, 2)])
