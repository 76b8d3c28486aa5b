"""
Tests for the table state machine endpoints.

Covers:
- open session (AVAILABLE/RESERVED -> OCCUPIED, one ACTIVE session per table)
- request bill, reserve, release, out of service
- branch scoping and role checks
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from rest_api.models import Table, TableSession
from rest_api.services.domain import TableService
from shared.config.constants import Roles, SessionStatus, TableStatus
from shared.utils.exceptions import ConflictError
from shared.utils.schemas import OpenSessionRequest


def _set_status(db_session, table, status):
    table.status = status
    db_session.commit()


class TestOpenSession:
    def test_open_session_occupies_table(self, client, db_session, seed_table, waiter_headers, notifier):
        response = client.post(
            f"/api/tables/{seed_table.id}/open-session",
            json={"guestCount": 3, "customerName": "Gómez"},
            headers=waiter_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "ACTIVE"
        assert data["guestCount"] == 3
        assert data["customerName"] == "Gómez"
        assert data["tableName"] == "4"
        assert data["openedByUserId"] == 2

        db_session.refresh(seed_table)
        assert seed_table.status == TableStatus.OCCUPIED
        assert notifier.topics_for("TableSessionOpened") == ["admins"]
        assert notifier.of_type("TableStatusChanged")[0].payload["status"] == "OCCUPIED"

    def test_open_session_without_body_uses_defaults(self, client, seed_table, waiter_headers):
        response = client.post(f"/api/tables/{seed_table.id}/open-session", headers=waiter_headers)

        assert response.status_code == 201
        assert response.json()["guestCount"] == 1

    def test_second_open_is_rejected(self, client, db_session, seed_table, waiter_headers, open_session):
        response = client.post(f"/api/tables/{seed_table.id}/open-session", json={}, headers=waiter_headers)

        assert response.status_code == 400
        active = db_session.execute(
            select(TableSession).where(
                TableSession.table_id == seed_table.id,
                TableSession.status == SessionStatus.ACTIVE,
            )
        ).scalars().all()
        assert len(active) == 1

    def test_open_reserved_table_takes_reservation_name(self, client, db_session, seed_table, waiter_headers):
        client.post(
            f"/api/tables/{seed_table.id}/reserve",
            json={"customerName": "Familia Rossi", "notes": "cumpleaños"},
            headers=waiter_headers,
        )

        response = client.post(f"/api/tables/{seed_table.id}/open-session", json={}, headers=waiter_headers)

        assert response.status_code == 201
        assert response.json()["customerName"] == "Familia Rossi"
        db_session.refresh(seed_table)
        assert seed_table.status == TableStatus.OCCUPIED
        assert seed_table.reservation_name is None
        assert seed_table.reservation_notes is None

    def test_open_out_of_service_table_fails(self, client, db_session, seed_table, waiter_headers):
        _set_status(db_session, seed_table, TableStatus.OUT_OF_SERVICE)

        response = client.post(f"/api/tables/{seed_table.id}/open-session", json={}, headers=waiter_headers)

        assert response.status_code == 400

    def test_open_inactive_table_fails(self, client, db_session, seed_table, waiter_headers):
        seed_table.is_active = False
        db_session.commit()

        response = client.post(f"/api/tables/{seed_table.id}/open-session", json={}, headers=waiter_headers)

        assert response.status_code == 400

    def test_open_missing_table_is_404(self, client, seed_branch, waiter_headers):
        response = client.post("/api/tables/9999/open-session", json={}, headers=waiter_headers)

        assert response.status_code == 404

    def test_guest_count_is_validated(self, client, seed_table, waiter_headers):
        response = client.post(
            f"/api/tables/{seed_table.id}/open-session",
            json={"guestCount": 0},
            headers=waiter_headers,
        )

        assert response.status_code == 422

    def test_racing_open_becomes_conflict(self, db_session, seed_table, monkeypatch):
        """A session inserted behind the service's back trips the unique index."""
        db_session.add(TableSession(
            table_id=seed_table.id,
            branch_id=seed_table.branch_id,
            status=SessionStatus.ACTIVE,
        ))
        db_session.commit()

        service = TableService(db_session)
        monkeypatch.setattr(service, "get_active_session", lambda table_id: None)

        with pytest.raises(ConflictError) as exc:
            service.open_session(seed_table.id, OpenSessionRequest(), user_id=1)
        assert exc.value.status_code == 409

    def test_unique_index_allows_many_closed_sessions(self, db_session, seed_table):
        for _ in range(3):
            db_session.add(TableSession(
                table_id=seed_table.id,
                branch_id=seed_table.branch_id,
                status=SessionStatus.CLOSED,
            ))
        db_session.commit()

        db_session.add(TableSession(table_id=seed_table.id, branch_id=seed_table.branch_id))
        db_session.add(TableSession(table_id=seed_table.id, branch_id=seed_table.branch_id))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestOtherTransitions:
    def test_request_bill_from_occupied(self, client, db_session, seed_table, waiter_headers, open_session):
        response = client.post(f"/api/tables/{seed_table.id}/request-bill", headers=waiter_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "BILL_REQUESTED"
        assert response.json()["activeSessionId"] == open_session["id"]

    def test_request_bill_from_available_fails(self, client, seed_table, waiter_headers):
        response = client.post(f"/api/tables/{seed_table.id}/request-bill", headers=waiter_headers)

        assert response.status_code == 400

    def test_reserve_and_release(self, client, db_session, seed_table, waiter_headers, notifier):
        response = client.post(
            f"/api/tables/{seed_table.id}/reserve",
            json={"customerName": "Martínez"},
            headers=waiter_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "RESERVED"
        assert response.json()["reservationName"] == "Martínez"

        response = client.post(f"/api/tables/{seed_table.id}/release", headers=waiter_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "AVAILABLE"
        assert response.json()["reservationName"] is None

        statuses = [e.payload["status"] for e in notifier.of_type("TableStatusChanged")]
        assert statuses == ["RESERVED", "AVAILABLE"]

    def test_release_available_table_fails(self, client, seed_table, waiter_headers):
        response = client.post(f"/api/tables/{seed_table.id}/release", headers=waiter_headers)

        assert response.status_code == 400

    @pytest.mark.parametrize("operation", ["reserve", "release", "out-of-service"])
    def test_occupied_table_only_leaves_by_closing(self, client, db_session, seed_table, waiter_headers, open_session, operation):
        response = client.post(f"/api/tables/{seed_table.id}/{operation}", headers=waiter_headers)

        assert response.status_code == 400
        db_session.refresh(seed_table)
        assert seed_table.status == TableStatus.OCCUPIED

    def test_out_of_service_and_back(self, client, seed_table, waiter_headers):
        response = client.post(f"/api/tables/{seed_table.id}/out-of-service", headers=waiter_headers)
        assert response.json()["status"] == "OUT_OF_SERVICE"

        response = client.post(f"/api/tables/{seed_table.id}/release", headers=waiter_headers)
        assert response.json()["status"] == "AVAILABLE"

    def test_close_session_without_active_session_fails(self, client, seed_table, waiter_headers):
        response = client.post(f"/api/tables/{seed_table.id}/close-session", json={}, headers=waiter_headers)

        assert response.status_code == 400

    def test_close_session_by_table_frees_it(self, client, db_session, seed_table, waiter_headers, open_session):
        response = client.post(
            f"/api/tables/{seed_table.id}/close-session",
            json={"paymentMethod": "CARD", "tipCents": 200},
            headers=waiter_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == open_session["id"]
        assert data["status"] == "CLOSED"
        assert data["paymentMethod"] == "CARD"
        assert data["tipCents"] == 200
        db_session.refresh(seed_table)
        assert seed_table.status == TableStatus.AVAILABLE


class TestTableAccess:
    def test_list_tables_with_session_summary(self, client, seed_table, second_table, waiter_headers, open_session):
        response = client.get("/api/tables", headers=waiter_headers)

        assert response.status_code == 200
        tables = {t["id"]: t for t in response.json()}
        assert tables[seed_table.id]["activeSessionId"] == open_session["id"]
        assert tables[seed_table.id]["guestCount"] == 2
        assert tables[second_table.id]["activeSessionId"] is None

    def test_list_tables_other_branch_filter_forbidden(self, client, seed_table, other_branch, waiter_headers):
        response = client.get(f"/api/tables?branch_id={other_branch.id}", headers=waiter_headers)

        assert response.status_code == 403

    def test_table_of_other_branch_is_forbidden(self, client, db_session, other_branch, waiter_headers):
        table = Table(branch_id=other_branch.id, name="1")
        db_session.add(table)
        db_session.commit()

        response = client.post(f"/api/tables/{table.id}/open-session", json={}, headers=waiter_headers)

        assert response.status_code == 403

    def test_kitchen_role_cannot_open_sessions(self, client, seed_table, kitchen_headers):
        response = client.post(f"/api/tables/{seed_table.id}/open-session", json={}, headers=kitchen_headers)

        assert response.status_code == 403

    def test_requires_token(self, client, seed_table):
        response = client.get("/api/tables")

        assert response.status_code == 401

    def test_manager_of_branch_can_read_table(self, client, seed_table, seed_branch, make_headers):
        headers = make_headers(10, [Roles.MANAGER], [seed_branch.id])

        response = client.get(f"/api/tables/{seed_table.id}", headers=headers)

        assert response.status_code == 200
        assert response.json()["status"] == "AVAILABLE"
