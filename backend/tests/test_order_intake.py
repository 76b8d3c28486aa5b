"""
Tests for dine-in order intake.

Covers:
- public (QR) orders priced from the catalog
- staff orders on a session, trusting client prices
- kitchen routing and realtime notifications of a new order
- session running totals
"""

import pytest
from sqlalchemy import func, select

from rest_api.models import KitchenTicket, Order, OrderStatusHistory, TableSession
from shared.config.constants import Roles
from shared.security.auth import sign_table_order_token


def _public_order(client, table_id, items, headers=None, **extra):
    return client.post(
        f"/api/public/tables/{table_id}/orders",
        json={"items": items, **extra},
        headers=headers or {},
    )


def _session_order(client, session_id, items, headers=None, **extra):
    return client.post(
        f"/api/table-sessions/{session_id}/orders",
        json={"items": items, **extra},
        headers=headers or {},
    )


class TestPublicOrder:
    def test_prices_from_catalog(self, client, seed_table, seed_catalog, open_session):
        response = _public_order(
            client,
            seed_table.id,
            [
                {"productId": seed_catalog["burger"].id, "qty": 2, "unitPriceCents": 1},
                {"productId": seed_catalog["steak"].id, "qty": 1, "useDoublePrice": True},
                {"productId": seed_catalog["beer"].id, "qty": 1, "modifiersTotalCents": 500},
            ],
        )

        assert response.status_code == 201
        data = response.json()
        lines = {item["nameSnapshot"]: item for item in data["items"]}
        assert lines["Burger"]["unitPriceCents"] == 1500
        assert lines["Burger"]["lineTotalCents"] == 3000
        assert lines["Steak"]["unitPriceCents"] == 9000
        assert lines["Beer"]["modifiersTotalCents"] == 0
        assert lines["Beer"]["lineTotalCents"] == 800
        assert data["subtotalCents"] == 3000 + 9000 + 800
        assert data["totalCents"] == data["subtotalCents"]

    def test_dine_in_defaults(self, client, seed_table, seed_catalog, open_session):
        data = _public_order(
            client, seed_table.id, [{"productId": seed_catalog["fries"].id, "qty": 1}]
        ).json()

        assert data["tableSessionId"] == open_session["id"]
        assert data["customerName"] == "Pérez"
        assert data["phone"] == "0000000000"
        assert data["channel"] == "DINE_IN"
        assert data["takeMode"] == "DINE_IN"
        assert data["status"] == "CREATED"
        assert len(data["publicCode"]) == 8

    def test_customer_name_falls_back_to_table(self, client, seed_table, seed_catalog, waiter_headers):
        client.post(f"/api/tables/{seed_table.id}/open-session", json={}, headers=waiter_headers)

        data = _public_order(
            client, seed_table.id, [{"productId": seed_catalog["fries"].id, "qty": 1}]
        ).json()

        assert data["customerName"] == "Mesa 4"

    def test_discount_is_capped_at_subtotal(self, client, seed_table, seed_catalog, open_session):
        data = _public_order(
            client,
            seed_table.id,
            [{"productId": seed_catalog["fries"].id, "qty": 1}],
            discountCents=5000,
        ).json()

        assert data["discountCents"] == 600
        assert data["totalCents"] == 0

    def test_one_ticket_per_station(self, client, db_session, seed_table, seed_catalog, open_session):
        data = _public_order(
            client,
            seed_table.id,
            [
                {"productId": seed_catalog["burger"].id, "qty": 1},
                {"productId": seed_catalog["beer"].id, "qty": 2},
                {"productId": seed_catalog["mystery"].id, "qty": 1},
            ],
        ).json()

        assert {t["station"]: t["ticketNumber"] for t in data["tickets"]} == {"KITCHEN": "K001", "BAR": "B001"}
        kitchen = next(t for t in data["tickets"] if t["station"] == "KITCHEN")
        assert [i["name"] for i in kitchen["items"]] == ["Burger", "Mystery"]
        assert db_session.scalar(select(func.count(KitchenTicket.id))) == 2

    def test_notifications(self, client, seed_table, seed_branch, seed_catalog, open_session, notifier):
        data = _public_order(
            client,
            seed_table.id,
            [
                {"productId": seed_catalog["burger"].id, "qty": 1},
                {"productId": seed_catalog["beer"].id, "qty": 1},
            ],
        ).json()

        assert notifier.topics_for("OrderCreated") == ["admins", f"admins:branch:{seed_branch.id}"]
        created = notifier.of_type("OrderCreated")[0].payload
        assert created["id"] == data["id"]
        assert created["takeMode"] == "DINE_IN"
        assert created["totalCents"] == 2300

        table_event = notifier.of_type("TableOrderCreated")[0]
        assert table_event.topic == "admins"
        assert table_event.payload == {
            "orderId": data["id"],
            "sessionId": open_session["id"],
            "tableId": seed_table.id,
            "tableName": "4",
        }

        assert sorted(notifier.topics_for("NewKitchenTicket")) == ["Kitchen_BAR", "Kitchen_KITCHEN"]
        pushes = notifier.of_type("KitchenPush")
        assert sorted(e.topic for e in pushes) == ["Kitchen_BAR", "Kitchen_KITCHEN"]
        assert all(e.payload["body"] == "Mesa 4: 1 item(s)" for e in pushes)

    def test_writes_created_history(self, client, db_session, seed_table, seed_catalog, open_session):
        data = _public_order(
            client, seed_table.id, [{"productId": seed_catalog["fries"].id, "qty": 1}]
        ).json()

        history = db_session.execute(
            select(OrderStatusHistory).where(OrderStatusHistory.order_id == data["id"])
        ).scalars().all()
        assert [(h.status, h.changed_by_user_id) for h in history] == [("CREATED", None)]

    def test_updates_session_running_totals(self, client, db_session, seed_table, seed_catalog, open_session):
        for product in ("burger", "fries"):
            _public_order(client, seed_table.id, [{"productId": seed_catalog[product].id, "qty": 1}])

        session = db_session.get(TableSession, open_session["id"])
        db_session.refresh(session)
        assert session.subtotal_cents == 2100
        assert session.total_cents == 2100

    def test_table_without_session(self, client, seed_table, seed_catalog):
        response = _public_order(client, seed_table.id, [{"productId": seed_catalog["fries"].id, "qty": 1}])

        assert response.status_code == 400

    def test_empty_items(self, client, seed_table, open_session):
        response = _public_order(client, seed_table.id, [])

        assert response.status_code == 400

    def test_unknown_table(self, client, seed_branch, seed_catalog):
        response = _public_order(client, 999, [{"productId": seed_catalog["fries"].id, "qty": 1}])

        assert response.status_code == 404

    @pytest.mark.parametrize("product", ["retired", None])
    def test_unknown_or_inactive_product(self, client, db_session, seed_table, seed_catalog, open_session, product):
        product_id = seed_catalog[product].id if product else 9999

        response = _public_order(client, seed_table.id, [{"productId": product_id, "qty": 1}])

        assert response.status_code == 404
        assert db_session.scalar(select(func.count(Order.id))) == 0

    def test_invalid_quantity(self, client, seed_table, seed_catalog, open_session):
        response = _public_order(client, seed_table.id, [{"productId": seed_catalog["fries"].id, "qty": 0}])

        assert response.status_code == 422

    def test_with_table_token_from_qr(self, client, seed_table, seed_catalog, open_session, waiter_headers):
        qr = client.get(f"/api/tables/{seed_table.id}/qr", headers=waiter_headers).json()
        assert qr["sessionId"] == open_session["id"]

        response = _public_order(
            client,
            seed_table.id,
            [{"productId": seed_catalog["fries"].id, "qty": 1}],
            headers={"X-Table-Token": qr["token"]},
        )

        assert response.status_code == 201

    def test_token_for_another_table(self, client, seed_table, second_table, seed_catalog, open_session):
        token, _ = sign_table_order_token(second_table.id, second_table.branch_id)

        response = _public_order(
            client,
            seed_table.id,
            [{"productId": seed_catalog["fries"].id, "qty": 1}],
            headers={"X-Table-Token": token},
        )

        assert response.status_code == 403

    def test_token_for_a_previous_session(self, client, seed_table, seed_catalog, open_session):
        token, _ = sign_table_order_token(seed_table.id, seed_table.branch_id, session_id=open_session["id"] + 100)

        response = _public_order(
            client,
            seed_table.id,
            [{"productId": seed_catalog["fries"].id, "qty": 1}],
            headers={"X-Table-Token": token},
        )

        assert response.status_code == 403

    def test_invalid_token(self, client, seed_table, seed_catalog, open_session):
        response = _public_order(
            client,
            seed_table.id,
            [{"productId": seed_catalog["fries"].id, "qty": 1}],
            headers={"X-Table-Token": "garbage"},
        )

        assert response.status_code == 401


class TestSessionOrder:
    def test_trusts_client_prices(self, client, open_session, seed_catalog, waiter_headers):
        response = _session_order(
            client,
            open_session["id"],
            [
                {"productId": seed_catalog["burger"].id, "qty": 2, "unitPriceCents": 1200},
                {"productId": seed_catalog["fries"].id, "qty": 2, "modifiersTotalCents": 150},
                {"productId": seed_catalog["steak"].id, "qty": 1, "unitPriceCents": 9000, "lineTotalCents": 8500},
                {"productId": seed_catalog["beer"].id, "qty": 1},
            ],
            headers=waiter_headers,
        )

        assert response.status_code == 201
        lines = {item["nameSnapshot"]: item for item in response.json()["items"]}
        assert lines["Burger"]["lineTotalCents"] == 2400
        assert lines["Fries"]["unitPriceCents"] == 600
        assert lines["Fries"]["lineTotalCents"] == (600 + 150) * 2
        assert lines["Steak"]["lineTotalCents"] == 8500
        assert lines["Beer"]["lineTotalCents"] == 800
        assert response.json()["subtotalCents"] == 2400 + 1500 + 8500 + 800

    def test_history_records_the_waiter(self, client, db_session, open_session, seed_catalog, waiter_headers):
        data = _session_order(
            client, open_session["id"], [{"productId": seed_catalog["fries"].id, "qty": 1}], headers=waiter_headers
        ).json()

        history = db_session.scalar(select(OrderStatusHistory).where(OrderStatusHistory.order_id == data["id"]))
        assert history.changed_by_user_id == 2

    def test_session_totals_after_orders(self, client, open_session, seed_catalog, waiter_headers):
        for qty in (1, 2):
            _session_order(
                client,
                open_session["id"],
                [{"productId": seed_catalog["burger"].id, "qty": qty}],
                headers=waiter_headers,
            )

        session = client.get(f"/api/table-sessions/{open_session['id']}", headers=waiter_headers).json()

        assert session["subtotalCents"] == 4500
        assert session["totalCents"] == 4500
        assert len(session["orders"]) == 2

        orders = client.get(f"/api/table-sessions/{open_session['id']}/orders", headers=waiter_headers).json()
        assert [o["subtotalCents"] for o in orders] == [1500, 3000]
        assert all(o["tickets"][0]["station"] == "KITCHEN" for o in orders)

    def test_with_table_token(self, client, seed_table, open_session, seed_catalog):
        token, _ = sign_table_order_token(seed_table.id, seed_table.branch_id, session_id=open_session["id"])

        response = _session_order(
            client,
            open_session["id"],
            [{"productId": seed_catalog["fries"].id, "qty": 1}],
            headers={"X-Table-Token": token},
        )

        assert response.status_code == 201

    def test_table_token_for_another_session(self, client, seed_table, open_session, seed_catalog):
        token, _ = sign_table_order_token(seed_table.id, seed_table.branch_id, session_id=open_session["id"] + 1)

        response = _session_order(
            client,
            open_session["id"],
            [{"productId": seed_catalog["fries"].id, "qty": 1}],
            headers={"X-Table-Token": token},
        )

        assert response.status_code == 403

    def test_table_token_for_another_table(self, client, second_table, open_session, seed_catalog):
        token, _ = sign_table_order_token(second_table.id, second_table.branch_id)

        response = _session_order(
            client,
            open_session["id"],
            [{"productId": seed_catalog["fries"].id, "qty": 1}],
            headers={"X-Table-Token": token},
        )

        assert response.status_code == 403

    def test_requires_credentials(self, client, open_session, seed_catalog):
        response = _session_order(client, open_session["id"], [{"productId": seed_catalog["fries"].id, "qty": 1}])

        assert response.status_code == 401

    def test_kitchen_role_cannot_order(self, client, open_session, seed_catalog, kitchen_headers):
        response = _session_order(
            client, open_session["id"], [{"productId": seed_catalog["fries"].id, "qty": 1}], headers=kitchen_headers
        )

        assert response.status_code == 403

    def test_other_branch_forbidden(self, client, open_session, other_branch, seed_catalog, make_headers):
        headers = make_headers(30, [Roles.WAITER], [other_branch.id])

        response = _session_order(
            client, open_session["id"], [{"productId": seed_catalog["fries"].id, "qty": 1}], headers=headers
        )

        assert response.status_code == 403

    def test_missing_session(self, client, seed_catalog, waiter_headers):
        response = _session_order(client, 999, [{"productId": seed_catalog["fries"].id, "qty": 1}], headers=waiter_headers)

        assert response.status_code == 404

    def test_closed_session(self, client, db_session, open_session, seed_catalog, waiter_headers):
        client.post(f"/api/table-sessions/{open_session['id']}/close", json={}, headers=waiter_headers)

        response = _session_order(
            client, open_session["id"], [{"productId": seed_catalog["fries"].id, "qty": 1}], headers=waiter_headers
        )

        assert response.status_code == 400
        assert db_session.scalar(select(func.count(Order.id))) == 0
