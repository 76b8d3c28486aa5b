"""
Tests for order detail and order status changes.
"""

import pytest

from shared.config.constants import Roles


@pytest.fixture
def order(client, open_session, seed_catalog, waiter_headers):
    response = client.post(
        f"/api/table-sessions/{open_session['id']}/orders",
        json={"items": [{"productId": seed_catalog["burger"].id, "qty": 2}]},
        headers=waiter_headers,
    )
    assert response.status_code == 201, response.json()
    return response.json()


def _set_status(client, order_id, status, headers):
    return client.put(f"/api/admin/orders/{order_id}/status", json={"status": status}, headers=headers)


class TestOrderDetail:
    def test_detail_has_history_and_tickets(self, client, order, waiter_headers):
        response = client.get(f"/api/admin/orders/{order['id']}", headers=waiter_headers)

        assert response.status_code == 200
        data = response.json()
        assert [h["status"] for h in data["history"]] == ["CREATED"]
        assert data["tickets"][0]["ticketNumber"] == "K001"
        assert data["items"][0]["qty"] == 2

    def test_missing_order(self, client, seed_branch, waiter_headers):
        assert client.get("/api/admin/orders/999", headers=waiter_headers).status_code == 404

    def test_other_branch(self, client, order, other_branch, make_headers):
        headers = make_headers(40, [Roles.MANAGER], [other_branch.id])

        assert client.get(f"/api/admin/orders/{order['id']}", headers=headers).status_code == 403


class TestOrderStatus:
    def test_status_change_appends_history(self, client, order, manager_headers, notifier):
        response = _set_status(client, order["id"], "confirmed", manager_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "CONFIRMED"
        assert [(h["status"], h["changedByUserId"]) for h in data["history"]] == [
            ("CREATED", 2),
            ("CONFIRMED", 3),
        ]

        changes = notifier.of_type("OrderStatusChanged")
        assert [e.topic for e in changes] == ["admins", f"admins:branch:{order['branchId']}"]
        assert changes[0].payload["previousStatus"] == "CREATED"
        assert changes[0].payload["status"] == "CONFIRMED"

    def test_terminal_status_is_final(self, client, order, manager_headers):
        assert _set_status(client, order["id"], "DELIVERED", manager_headers).status_code == 200

        response = _set_status(client, order["id"], "IN_PREP", manager_headers)

        assert response.status_code == 400

    def test_same_status_is_rejected(self, client, order, manager_headers):
        assert _set_status(client, order["id"], "CREATED", manager_headers).status_code == 400

    def test_unknown_status(self, client, order, manager_headers):
        assert _set_status(client, order["id"], "LOST", manager_headers).status_code == 400

    def test_cancel_removes_order_from_session_totals(self, client, order, open_session, seed_catalog, waiter_headers):
        client.post(
            f"/api/table-sessions/{open_session['id']}/orders",
            json={"items": [{"productId": seed_catalog["beer"].id, "qty": 1}]},
            headers=waiter_headers,
        )

        assert _set_status(client, order["id"], "CANCELLED", waiter_headers).status_code == 200

        session = client.get(f"/api/table-sessions/{open_session['id']}", headers=waiter_headers).json()
        assert session["subtotalCents"] == 800
        assert session["totalCents"] == 800

    def test_kitchen_cannot_change_orders(self, client, order, kitchen_headers):
        assert _set_status(client, order["id"], "CONFIRMED", kitchen_headers).status_code == 403
