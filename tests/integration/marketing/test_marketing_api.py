"""Integration tests for the marketing endpoints.

Covers:
- Campaign CRUD, send (202, queued after commit), analytics, locked edits.
- Discount CRUD (staff) and validation (any signed-in customer).
- Automation rules toggle/stats and template category filter.
- Public open pixel, click redirect (storefront hosts only) and
  unsubscribe links of campaign emails.
- Public newsletter signup, staff-only signup list, overview stats.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.core import mail
from django.utils import timezone

from modules.marketing.constants import CampaignStatus, DiscountType, RuleType
from modules.marketing.models import (
    AutomationRule,
    Campaign,
    DiscountCode,
    EmailSignup,
    EmailTemplate,
    EmailTracking,
    EmailUnsubscribe,
)

pytestmark = pytest.mark.integration

BASE_URL = "/api/v1/marketing/"
CAMPAIGNS_URL = f"{BASE_URL}campaigns/"
DISCOUNTS_URL = f"{BASE_URL}discounts/"
AUTOMATION_URL = f"{BASE_URL}automation/"
TEMPLATES_URL = f"{BASE_URL}templates/"
SIGNUPS_URL = f"{BASE_URL}signups/"
TRACK_URL = f"{BASE_URL}track/"
UNSUBSCRIBE_URL = f"{BASE_URL}unsubscribe/"

CAMPAIGN = {"name": "Spring drop", "subject": "New arrivals", "content": "Hi {email}!"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def campaign(admin_client):
    response = admin_client.post(CAMPAIGNS_URL, CAMPAIGN, format="json")
    assert response.status_code == 201
    return response.json()


@pytest.fixture()
def discount():
    return DiscountCode.objects.create(
        code="WELCOME10", discount_type=DiscountType.PERCENTAGE, value=Decimal("10")
    )


# ===========================================================================
# Campaigns
# ===========================================================================


class TestCampaigns:
    def test_create_and_list(self, admin_client, campaign):
        assert campaign["status"] == CampaignStatus.DRAFT

        data = admin_client.get(CAMPAIGNS_URL).json()

        assert [c["id"] for c in data["campaigns"]] == [campaign["id"]]

    def test_missing_subject_returns_400(self, admin_client):
        response = admin_client.post(CAMPAIGNS_URL, {"name": "x", "content": "y"}, format="json")
        assert response.status_code == 400
        assert response.json()["errors"][0]["attr"] == "subject"

    def test_customer_forbidden(self, auth_client):
        assert auth_client.get(CAMPAIGNS_URL).status_code == 403

    def test_send(self, admin_client, campaign, customer, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            response = admin_client.post(f"{CAMPAIGNS_URL}{campaign['id']}/send/")

        assert response.status_code == 202
        assert response.json() == {
            "message": "Campaign queued for sending",
            "campaign_id": campaign["id"],
            "total_recipients": 1,
        }
        assert Campaign.objects.get(pk=campaign["id"]).status == CampaignStatus.COMPLETED
        assert [m.to for m in mail.outbox] == [[customer.email]]

    def test_send_without_recipients_returns_400(self, admin_client, campaign):
        response = admin_client.post(f"{CAMPAIGNS_URL}{campaign['id']}/send/")
        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "empty_audience"

    def test_completed_campaign_cannot_be_edited(self, admin_client, campaign):
        Campaign.objects.filter(pk=campaign["id"]).update(status=CampaignStatus.COMPLETED)

        response = admin_client.patch(
            f"{CAMPAIGNS_URL}{campaign['id']}/", {"name": "Again"}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "campaign_already_sent"

    def test_analytics(self, admin_client, campaign):
        data = admin_client.get(f"{CAMPAIGNS_URL}{campaign['id']}/analytics/").json()
        assert data["analytics"]["open_rate"] == 0.0

    def test_unknown_campaign_returns_404(self, admin_client):
        response = admin_client.get(f"{CAMPAIGNS_URL}00000000-0000-0000-0000-000000000000/")
        assert response.status_code == 404
        assert response.json()["errors"][0]["code"] == "campaign_not_found"

    def test_delete(self, admin_client, campaign):
        assert admin_client.delete(f"{CAMPAIGNS_URL}{campaign['id']}/").status_code == 204
        assert not Campaign.objects.exists()


# ===========================================================================
# Discounts
# ===========================================================================


class TestDiscounts:
    def test_create(self, admin_client):
        response = admin_client.post(
            DISCOUNTS_URL,
            {"code": "flash5", "discount_type": "fixed", "value": "5.00", "max_uses": 100},
            format="json",
        )

        assert response.status_code == 201
        assert response.json()["code"] == "FLASH5"

    def test_duplicate_returns_409(self, admin_client, discount):
        response = admin_client.post(
            DISCOUNTS_URL,
            {"code": "welcome10", "discount_type": "percentage", "value": "5"},
            format="json",
        )
        assert response.status_code == 409
        assert response.json()["errors"][0]["code"] == "discount_code_taken"

    def test_list(self, admin_client, discount):
        data = admin_client.get(DISCOUNTS_URL).json()
        assert [d["code"] for d in data["discounts"]] == ["WELCOME10"]

    def test_validate_as_customer(self, auth_client, discount):
        response = auth_client.post(
            f"{DISCOUNTS_URL}validate/", {"code": "welcome10", "orderAmount": "59.98"}, format="json"
        )

        assert response.status_code == 200
        assert response.json() == {
            "code": "WELCOME10",
            "discount_type": "percentage",
            "value": "10.00",
            "discount_amount": "6.00",
            "final_amount": "53.98",
        }

    def test_validate_below_minimum(self, auth_client):
        DiscountCode.objects.create(
            code="BIG50",
            discount_type=DiscountType.FIXED,
            value=Decimal("50"),
            min_order_amount=Decimal("200"),
        )
        response = auth_client.post(
            f"{DISCOUNTS_URL}validate/", {"code": "BIG50", "order_amount": "20"}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "invalid_discount"

    def test_validate_unknown_code(self, auth_client):
        response = auth_client.post(
            f"{DISCOUNTS_URL}validate/", {"code": "NOPE", "order_amount": "20"}, format="json"
        )
        assert response.status_code == 404

    def test_validate_requires_authentication(self, api_client, discount):
        response = api_client.post(
            f"{DISCOUNTS_URL}validate/", {"code": "WELCOME10", "order_amount": "20"}, format="json"
        )
        assert response.status_code == 401

    def test_customer_cannot_list(self, auth_client):
        assert auth_client.get(DISCOUNTS_URL).status_code == 403


# ===========================================================================
# Automation and templates
# ===========================================================================


class TestAutomation:
    def test_create_toggle_and_stats(self, admin_client):
        created = admin_client.post(
            AUTOMATION_URL, {"name": "Welcome", "rule_type": "welcome"}, format="json"
        ).json()

        toggled = admin_client.post(f"{AUTOMATION_URL}{created['id']}/toggle/").json()
        stats = admin_client.get(f"{AUTOMATION_URL}stats/").json()

        assert toggled["is_active"] is False
        assert stats["rules"][0]["rule_id"] == created["id"]
        assert stats["rules"][0]["conversion_rate"] == 0.0

    def test_list(self, admin_client):
        AutomationRule.objects.create(name="Restock", rule_type=RuleType.LOW_STOCK)
        data = admin_client.get(AUTOMATION_URL).json()
        assert [r["name"] for r in data["rules"]] == ["Restock"]

    def test_invalid_rule_type(self, admin_client):
        response = admin_client.post(
            AUTOMATION_URL, {"name": "Odd", "rule_type": "halloween"}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["attr"] == "rule_type"

    def test_template_category_filter(self, admin_client):
        EmailTemplate.objects.create(name="Hi", subject="Hi", content="Hi", category="welcome")
        EmailTemplate.objects.create(name="Sale", subject="Sale", content="Sale")

        data = admin_client.get(TEMPLATES_URL, {"category": "welcome"}).json()

        assert [t["name"] for t in data["templates"]] == ["Hi"]

    def test_unknown_rule_returns_404(self, admin_client):
        response = admin_client.post(
            f"{AUTOMATION_URL}00000000-0000-0000-0000-000000000000/toggle/"
        )
        assert response.status_code == 404
        assert response.json()["errors"][0]["code"] == "automation_rule_not_found"


# ===========================================================================
# Tracking links
# ===========================================================================


@pytest.fixture()
def tracking(customer):
    sent = Campaign.objects.create(
        name="Spring drop",
        subject="New arrivals",
        content="Hi",
        status=CampaignStatus.COMPLETED,
        sent_count=1,
    )
    return EmailTracking.objects.create(
        campaign=sent, recipient=customer.email, sent_at=timezone.now()
    )


class TestTrackingLinks:
    def test_open_pixel(self, api_client, tracking):
        response = api_client.get(f"{TRACK_URL}{tracking.id}/open/")
        api_client.get(f"{TRACK_URL}{tracking.id}/open/")

        assert response.status_code == 200
        assert response["Content-Type"] == "image/gif"
        tracking.campaign.refresh_from_db()
        assert tracking.campaign.open_count == 1

    def test_click_redirects_to_storefront(self, api_client, tracking, settings):
        target = f"{settings.FRONTEND_URL}/products/MON-001"

        response = api_client.get(f"{TRACK_URL}{tracking.id}/click/", {"url": target})

        assert response.status_code == 302
        assert response["Location"] == target
        tracking.campaign.refresh_from_db()
        assert tracking.campaign.click_count == 1
        assert tracking.campaign.open_count == 1

    def test_click_never_redirects_off_site(self, api_client, tracking, settings):
        response = api_client.get(
            f"{TRACK_URL}{tracking.id}/click/", {"url": "https://evil.example.net/"}
        )

        assert response.status_code == 302
        assert response["Location"] == settings.FRONTEND_URL

    def test_unknown_token_returns_404(self, api_client):
        response = api_client.get(f"{TRACK_URL}0190b5a0-0000-7000-8000-000000000000/open/")
        assert response.status_code == 404
        assert response.json()["errors"][0]["code"] == "email_tracking_not_found"

    def test_unsubscribe(self, api_client, admin_client, tracking, customer):
        response = api_client.post(
            UNSUBSCRIBE_URL, {"token": str(tracking.id), "reason": "Not interested"}, format="json"
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Unsubscribed successfully", "email": customer.email}
        assert EmailUnsubscribe.objects.filter(email=customer.email).exists()
        analytics = admin_client.get(
            f"{CAMPAIGNS_URL}{tracking.campaign_id}/analytics/"
        ).json()["analytics"]
        assert analytics["unsubscribe_count"] == 1

    def test_unsubscribed_customer_is_not_emailed(
        self, api_client, admin_client, campaign, tracking, django_capture_on_commit_callbacks
    ):
        api_client.post(UNSUBSCRIBE_URL, {"token": str(tracking.id)}, format="json")
        EmailSignup.objects.create(email="fan@example.com")
        mail.outbox.clear()

        with django_capture_on_commit_callbacks(execute=True):
            response = admin_client.post(f"{CAMPAIGNS_URL}{campaign['id']}/send/")

        assert response.json()["total_recipients"] == 1
        assert [m.to for m in mail.outbox] == [["fan@example.com"]]

    def test_unsubscribe_requires_token(self, api_client):
        response = api_client.post(UNSUBSCRIBE_URL, {"reason": "x"}, format="json")
        assert response.status_code == 400
        assert response.json()["errors"][0]["attr"] == "token"


# ===========================================================================
# Signups and overview
# ===========================================================================


class TestSignups:
    def test_public_signup(self, api_client):
        response = api_client.post(
            SIGNUPS_URL, {"email": "Fan@Example.com", "source": "footer"}, format="json"
        )

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Subscribed successfully"
        assert data["signup"]["email"] == "fan@example.com"

    def test_duplicate_returns_409(self, api_client):
        EmailSignup.objects.create(email="fan@example.com")
        response = api_client.post(SIGNUPS_URL, {"email": "fan@example.com"}, format="json")
        assert response.status_code == 409
        assert response.json()["errors"][0]["code"] == "already_subscribed"

    def test_invalid_email(self, api_client):
        response = api_client.post(SIGNUPS_URL, {"email": "not-an-email"}, format="json")
        assert response.status_code == 400
        assert response.json()["errors"][0]["attr"] == "email"

    def test_list_is_staff_only(self, api_client, auth_client, admin_client):
        EmailSignup.objects.create(email="fan@example.com")

        assert api_client.get(SIGNUPS_URL).status_code == 401
        assert auth_client.get(SIGNUPS_URL).status_code == 403
        data = admin_client.get(SIGNUPS_URL).json()
        assert data["count"] == 1
        assert data["results"][0]["email"] == "fan@example.com"


class TestOverview:
    def test_stats(self, admin_client, campaign, discount):
        EmailSignup.objects.create(email="fan@example.com")

        data = admin_client.get(f"{BASE_URL}stats/").json()

        assert data["total_campaigns"] == 1
        assert data["campaigns_by_status"] == {"draft": 1}
        assert data["active_campaigns"] == 0
        assert data["total_sent"] == 0
        assert data["average_open_rate"] == 0.0
        assert data["active_discounts"] == 1
        assert data["total_signups"] == 1

    def test_customer_forbidden(self, auth_client):
        assert auth_client.get(f"{BASE_URL}stats/").status_code == 403
