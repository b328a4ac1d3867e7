"""Integration tests for the support ticket endpoints.

Covers:
- Public ticket creation (camelCase order fields accepted).
- Listing and detail visibility.
- Replies and staff-only status changes.
"""

from __future__ import annotations

import pytest
from django.core import mail

from modules.support.constants import TicketStatus
from modules.support.models import SupportTicket

pytestmark = pytest.mark.integration

TICKETS_URL = "/api/v1/support/tickets/"

TICKET = {"email": "ana@example.com", "subject": "Late order", "message": "Still waiting."}


@pytest.fixture()
def ticket(auth_client):
    response = auth_client.post(TICKETS_URL, TICKET, format="json")
    assert response.status_code == 201
    return response.json()["ticket"]


class TestCreateTicket:
    def test_guest(self, api_client):
        response = api_client.post(
            TICKETS_URL, {**TICKET, "email": "guest@example.com"}, format="json"
        )

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Support ticket created"
        assert data["ticket"]["customer_id"] is None
        assert data["ticket"]["reference"].startswith("TKT-")
        assert mail.outbox[0].to == ["guest@example.com"]

    def test_signed_in_customer_is_linked(self, auth_client, customer):
        response = auth_client.post(TICKETS_URL, TICKET, format="json")
        assert response.json()["ticket"]["customer_id"] == str(customer.id)

    def test_camel_case_order_fields(self, auth_client, order):
        item_id = str(order.items.first().id)
        response = auth_client.post(
            TICKETS_URL,
            {**TICKET, "type": "return", "orderId": str(order.id), "itemIds": [item_id]},
            format="json",
        )

        assert response.status_code == 201
        data = response.json()["ticket"]
        assert data["order_id"] == str(order.id)
        assert data["item_ids"] == [item_id]

    def test_missing_message(self, api_client):
        response = api_client.post(
            TICKETS_URL, {"email": "a@example.com", "subject": "Hi"}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["attr"] == "message"


class TestReadTickets:
    def test_list_is_scoped(self, auth_client, other_client, ticket):
        other_client.post(TICKETS_URL, {**TICKET, "email": "bruno@example.com"}, format="json")

        data = auth_client.get(TICKETS_URL).json()

        assert data["count"] == 1
        assert data["results"][0]["id"] == ticket["id"]

    def test_list_requires_authentication(self, api_client):
        assert api_client.get(TICKETS_URL).status_code == 401

    def test_detail_with_messages(self, auth_client, admin_client, ticket):
        admin_client.post(f"{TICKETS_URL}{ticket['id']}/reply/", {"message": "On it."}, format="json")

        data = auth_client.get(f"{TICKETS_URL}{ticket['id']}/").json()

        assert data["ticket"]["subject"] == "Late order"
        assert [(m["sender"], m["message"]) for m in data["messages"]] == [("admin", "On it.")]

    def test_other_customer_gets_403(self, other_client, ticket):
        response = other_client.get(f"{TICKETS_URL}{ticket['id']}/")
        assert response.status_code == 403
        assert response.json()["errors"][0]["code"] == "not_ticket_owner"

    def test_unknown_ticket(self, admin_client):
        response = admin_client.get(f"{TICKETS_URL}00000000-0000-0000-0000-000000000000/")
        assert response.status_code == 404


class TestReplyAndStatus:
    def test_customer_reply(self, auth_client, ticket):
        response = auth_client.post(
            f"{TICKETS_URL}{ticket['id']}/reply/", {"message": "Any update?"}, format="json"
        )

        assert response.status_code == 201
        assert response.json()["reply"]["sender"] == "user"

    def test_empty_reply(self, auth_client, ticket):
        response = auth_client.post(
            f"{TICKETS_URL}{ticket['id']}/reply/", {"message": ""}, format="json"
        )
        assert response.status_code == 400

    def test_admin_status_change(self, admin_client, ticket):
        response = admin_client.patch(
            f"{TICKETS_URL}{ticket['id']}/status/", {"status": "in_progress"}, format="json"
        )

        assert response.status_code == 200
        assert response.json()["ticket"]["status"] == TicketStatus.IN_PROGRESS
        assert SupportTicket.objects.get(pk=ticket["id"]).status == TicketStatus.IN_PROGRESS

    def test_invalid_status(self, admin_client, ticket):
        response = admin_client.put(
            f"{TICKETS_URL}{ticket['id']}/status/", {"status": "archived"}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["attr"] == "status"

    def test_customer_cannot_change_status(self, auth_client, ticket):
        response = auth_client.patch(
            f"{TICKETS_URL}{ticket['id']}/status/", {"status": "closed"}, format="json"
        )
        assert response.status_code == 403
