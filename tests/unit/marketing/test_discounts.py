"""Unit tests for discount codes.

Covers:
- DiscountCode.rejection_reason: status, validity window, usage cap, minimum.
- DiscountCode.amount_for: percentage rounding, fixed amount capped at total.
- DiscountService: unique codes, validate without consuming, redeem counts use.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from freezegun import freeze_time

from modules.marketing.constants import DiscountStatus, DiscountType
from modules.marketing.dtos import DiscountCodeDTO, UpdateDiscountCodeDTO, ValidateDiscountDTO
from modules.marketing.exceptions import DiscountCodeTaken, DiscountNotFound, InvalidDiscount
from modules.marketing.models import DiscountCode
from modules.marketing.repositories.django_repository import DiscountDjangoRepository
from modules.marketing.services import DiscountService

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def service():
    return DiscountService(DiscountDjangoRepository())


@pytest.fixture()
def make_discount():
    def _make(**overrides):
        data = {
            "code": "SAVE10",
            "discount_type": DiscountType.PERCENTAGE,
            "value": Decimal("10"),
        }
        data.update(overrides)
        return DiscountCode.objects.create(**data)

    return _make


# ===========================================================================
# Model rules
# ===========================================================================


class TestRejectionReason:
    def test_applicable(self, make_discount):
        assert make_discount().rejection_reason(Decimal("50"), timezone.now()) is None

    def test_inactive(self, make_discount):
        discount = make_discount(status=DiscountStatus.INACTIVE)
        assert discount.rejection_reason(Decimal("50"), timezone.now()) == (
            "Discount code is not active."
        )

    def test_not_started(self, make_discount):
        now = timezone.now()
        discount = make_discount(valid_from=now + timedelta(days=1))
        assert "not valid yet" in discount.rejection_reason(Decimal("50"), now)

    def test_expired(self, make_discount):
        now = timezone.now()
        discount = make_discount(valid_until=now - timedelta(seconds=1))
        assert "expired" in discount.rejection_reason(Decimal("50"), now)

    def test_usage_cap(self, make_discount):
        discount = make_discount(max_uses=2, used_count=2)
        assert "usage limit" in discount.rejection_reason(Decimal("50"), timezone.now())

    def test_unlimited_uses(self, make_discount):
        discount = make_discount(max_uses=None, used_count=10_000)
        assert discount.rejection_reason(Decimal("50"), timezone.now()) is None

    def test_minimum_order(self, make_discount):
        discount = make_discount(min_order_amount=Decimal("25.00"))
        assert discount.rejection_reason(Decimal("24.99"), timezone.now()) == (
            "Minimum order amount is $25.00."
        )


class TestAmountFor:
    def test_percentage_rounds_half_up(self, make_discount):
        discount = make_discount(value=Decimal("15"))
        assert discount.amount_for(Decimal("19.99")) == Decimal("3.00")

    def test_fixed_is_capped_at_order_amount(self, make_discount):
        discount = make_discount(discount_type=DiscountType.FIXED, value=Decimal("20"))
        assert discount.amount_for(Decimal("12.50")) == Decimal("12.50")

    def test_code_is_stored_uppercase(self, make_discount):
        assert make_discount(code=" spring ").code == "SPRING"


# ===========================================================================
# Service
# ===========================================================================


class TestDiscountService:
    def test_create(self, service):
        discount = service.create_discount(
            DiscountCodeDTO(code="vip20", discount_type="fixed", value=Decimal("20"))
        )
        assert discount.code == "VIP20"
        assert discount.status == DiscountStatus.ACTIVE

    def test_duplicate_code(self, service, make_discount):
        make_discount()
        with pytest.raises(DiscountCodeTaken):
            service.create_discount(
                DiscountCodeDTO(code="save10", discount_type="percentage", value=Decimal("5"))
            )

    def test_validate_does_not_consume(self, service, make_discount):
        discount = make_discount()

        result = service.validate(ValidateDiscountDTO(code="save10", order_amount=Decimal("80")))

        discount.refresh_from_db()
        assert result["discount_amount"] == Decimal("8.00")
        assert result["final_amount"] == Decimal("72.00")
        assert discount.used_count == 0

    def test_validate_unknown_code(self, service):
        with pytest.raises(DiscountNotFound):
            service.validate(ValidateDiscountDTO(code="NOPE", order_amount=Decimal("10")))

    def test_redeem_counts_use(self, service, make_discount):
        discount = make_discount(max_uses=1)

        amount = service.redeem("save10", Decimal("40"))

        discount.refresh_from_db()
        assert amount == Decimal("4.00")
        assert discount.used_count == 1
        with pytest.raises(InvalidDiscount):
            service.redeem("SAVE10", Decimal("40"))

    def test_redeem_outside_window(self, service, make_discount):
        with freeze_time("2026-03-01 12:00:00"):
            make_discount(valid_until=timezone.now() + timedelta(days=1))
        with freeze_time("2026-03-03 12:00:00"):
            with pytest.raises(InvalidDiscount, match="expired"):
                service.redeem("SAVE10", Decimal("40"))

    def test_update_and_active_count(self, service, make_discount):
        discount = make_discount()
        make_discount(code="OTHER")

        service.update_discount(str(discount.id), UpdateDiscountCodeDTO(status="inactive"))

        assert service.active_count() == 1

    def test_delete(self, service, make_discount):
        discount = make_discount()
        service.delete_discount(str(discount.id))
        with pytest.raises(DiscountNotFound):
            service.get_discount(str(discount.id))
