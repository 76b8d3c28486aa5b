"""
Tests for the kitchen ticket endpoints used by station displays.
"""

import pytest

from rest_api.models import KitchenTicket
from shared.config.constants import Roles, TicketStatus


@pytest.fixture
def placed_order(client, seed_catalog, open_session, waiter_headers):
    """Order with a KITCHEN ticket (burger x2) and a BAR ticket (beer)."""
    response = client.post(
        f"/api/table-sessions/{open_session['id']}/orders",
        json={
            "items": [
                {"productId": seed_catalog["burger"].id, "qty": 2},
                {"productId": seed_catalog["beer"].id, "qty": 1},
            ],
            "note": "mesa apurada",
        },
        headers=waiter_headers,
    )
    assert response.status_code == 201, response.json()
    return response.json()


def _ticket(placed_order, station):
    return next(t for t in placed_order["tickets"] if t["station"] == station)


def _advance(client, ticket_id, status, headers):
    return client.put(
        f"/api/admin/kitchen-tickets/{ticket_id}/status",
        json={"status": status},
        headers=headers,
    )


class TestListTickets:
    def test_lists_pending_tickets(self, client, placed_order, kitchen_headers):
        response = client.get("/api/admin/kitchen-tickets", headers=kitchen_headers)

        assert response.status_code == 200
        tickets = response.json()["tickets"]
        assert [t["ticketNumber"] for t in tickets] == ["K001", "B001"]
        kitchen = tickets[0]
        assert kitchen["status"] == "PENDING"
        assert kitchen["tableName"] == "4"
        assert kitchen["customerName"] == "Pérez"
        assert kitchen["notes"] == "mesa apurada"
        assert kitchen["items"][0]["qty"] == 2
        assert kitchen["items"][0]["name"] == "Burger"

    def test_filter_by_station(self, client, placed_order, kitchen_headers):
        response = client.get("/api/admin/kitchen-tickets?station=bar", headers=kitchen_headers)

        assert [t["station"] for t in response.json()["tickets"]] == ["BAR"]

    def test_invalid_station(self, client, placed_order, kitchen_headers):
        response = client.get("/api/admin/kitchen-tickets?station=PASTRY", headers=kitchen_headers)

        assert response.status_code == 400

    def test_invalid_status_filter(self, client, placed_order, kitchen_headers):
        response = client.get("/api/admin/kitchen-tickets?status=cooking", headers=kitchen_headers)

        assert response.status_code == 400

    def test_delivered_hidden_unless_requested(self, client, db_session, placed_order, kitchen_headers):
        ticket = db_session.get(KitchenTicket, _ticket(placed_order, "BAR")["id"])
        ticket.status = TicketStatus.DELIVERED
        db_session.commit()

        default = client.get("/api/admin/kitchen-tickets", headers=kitchen_headers).json()["tickets"]
        delivered = client.get(
            "/api/admin/kitchen-tickets?status=delivered", headers=kitchen_headers
        ).json()["tickets"]

        assert [t["station"] for t in default] == ["KITCHEN"]
        assert [t["station"] for t in delivered] == ["BAR"]

    def test_only_own_branches(self, client, placed_order, other_branch, make_headers):
        headers = make_headers(20, [Roles.KITCHEN], [other_branch.id])

        response = client.get("/api/admin/kitchen-tickets", headers=headers)

        assert response.status_code == 200
        assert response.json()["tickets"] == []

    def test_waiter_cannot_list(self, client, placed_order, waiter_headers):
        response = client.get("/api/admin/kitchen-tickets", headers=waiter_headers)

        assert response.status_code == 403


class TestGetTicket:
    def test_get_ticket(self, client, placed_order, waiter_headers):
        bar = _ticket(placed_order, "BAR")

        response = client.get(f"/api/admin/kitchen-tickets/{bar['id']}", headers=waiter_headers)

        assert response.status_code == 200
        assert response.json()["ticketNumber"] == "B001"
        assert response.json()["orderId"] == placed_order["id"]

    def test_missing_ticket(self, client, seed_branch, kitchen_headers):
        response = client.get("/api/admin/kitchen-tickets/999", headers=kitchen_headers)

        assert response.status_code == 404

    def test_other_branch_forbidden(self, client, placed_order, other_branch, make_headers):
        headers = make_headers(20, [Roles.KITCHEN], [other_branch.id])

        response = client.get(f"/api/admin/kitchen-tickets/{placed_order['tickets'][0]['id']}", headers=headers)

        assert response.status_code == 403


class TestUpdateStatus:
    def test_full_lifecycle(self, client, db_session, placed_order, kitchen_headers, notifier):
        kitchen = _ticket(placed_order, "KITCHEN")

        started = _advance(client, kitchen["id"], "in_progress", kitchen_headers).json()
        ready = _advance(client, kitchen["id"], "Ready", kitchen_headers).json()
        delivered = _advance(client, kitchen["id"], "DELIVERED", kitchen_headers).json()

        assert started["status"] == "IN_PROGRESS"
        assert started["startedAt"] is not None
        assert started["assignedUserId"] == 4
        assert ready["status"] == "READY"
        assert ready["readyAt"] is not None
        assert ready["startedAt"] == started["startedAt"]
        assert delivered["status"] == "DELIVERED"
        assert delivered["deliveredAt"] is not None

        updates = notifier.of_type("KitchenTicketUpdated")
        assert [e.topic for e in updates] == ["Kitchen_KITCHEN"] * 3
        assert [e.payload["status"] for e in updates] == ["IN_PROGRESS", "READY", "DELIVERED"]

    def test_skipping_a_step_is_rejected(self, client, placed_order, kitchen_headers):
        kitchen = _ticket(placed_order, "KITCHEN")

        response = _advance(client, kitchen["id"], "READY", kitchen_headers)

        assert response.status_code == 400
        assert _advance(client, kitchen["id"], "PENDING", kitchen_headers).status_code == 400

    def test_delivered_is_terminal(self, client, placed_order, kitchen_headers):
        bar = _ticket(placed_order, "BAR")
        for step in ("IN_PROGRESS", "READY", "DELIVERED"):
            assert _advance(client, bar["id"], step, kitchen_headers).status_code == 200

        response = _advance(client, bar["id"], "IN_PROGRESS", kitchen_headers)

        assert response.status_code == 400

    def test_unknown_status(self, client, placed_order, kitchen_headers):
        response = _advance(client, placed_order["tickets"][0]["id"], "BURNT", kitchen_headers)

        assert response.status_code == 400

    def test_notes_are_updated(self, client, placed_order, waiter_headers):
        kitchen = _ticket(placed_order, "KITCHEN")

        response = client.put(
            f"/api/admin/kitchen-tickets/{kitchen['id']}/status",
            json={"status": "IN_PROGRESS", "notes": "sin sal"},
            headers=waiter_headers,
        )

        assert response.status_code == 200
        assert response.json()["notes"] == "sin sal"

    def test_other_branch_forbidden(self, client, placed_order, other_branch, make_headers):
        headers = make_headers(20, [Roles.MANAGER], [other_branch.id])

        response = _advance(client, placed_order["tickets"][0]["id"], "IN_PROGRESS", headers)

        assert response.status_code == 403
