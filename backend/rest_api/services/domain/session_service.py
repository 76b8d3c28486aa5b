"""
Table Session Domain Service.

Listing with daily payment totals, detail, and the one close operation used
by both the session and the table endpoints.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import Order, Table, TableSession, utcnow
from shared.config.constants import OrderStatus, PaymentMethod, SessionStatus, TableStatus
from shared.config.logging import tables_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    BranchAccessError,
    InvalidStateError,
    SessionNotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    CloseSessionRequest,
    DailyTotalsOutput,
    OrderOutput,
    TableSessionListOutput,
    TableSessionOutput,
)

if TYPE_CHECKING:
    from rest_api.services.events import Notifier


def session_totals(orders: list[Order]) -> tuple[int, int]:
    """(subtotal, total) over the orders that were not cancelled."""
    billable = [o for o in orders if o.status != OrderStatus.CANCELLED]
    return (
        sum(o.subtotal_cents for o in billable),
        sum(o.total_cents for o in billable),
    )


def daily_totals(sessions: list[TableSession]) -> DailyTotalsOutput:
    """Totals of the closed sessions, split by payment method."""
    totals = DailyTotalsOutput()
    for session in sessions:
        if session.status != SessionStatus.CLOSED:
            continue
        totals.closed_sessions += 1
        totals.total_cents += session.total_cents
        totals.tip_cents += session.tip_cents
        if session.payment_method == PaymentMethod.CASH:
            totals.cash_cents += session.total_cents
        elif session.payment_method == PaymentMethod.CARD:
            totals.card_cents += session.total_cents
        elif session.payment_method == PaymentMethod.TRANSFER:
            totals.transfer_cents += session.total_cents
    return totals


class SessionService:
    """Domain service for table sessions."""

    def __init__(self, db: Session, notifier: "Notifier | None" = None):
        self._db = db
        self._notifier = notifier

    def _get_session(
        self,
        session_id: int,
        branch_ids: list[int] | None = None,
        *,
        for_update: bool = False,
    ) -> TableSession:
        query = select(TableSession).where(TableSession.id == session_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        session = self._db.scalar(query)
        if session is None:
            raise SessionNotFoundError(session_id)
        if branch_ids is not None and session.branch_id not in branch_ids:
            raise BranchAccessError(session.branch_id, session_id=session_id)
        return session

    def get_session(self, session_id: int, branch_ids: list[int] | None = None) -> TableSessionOutput:
        return TableSessionOutput.model_validate(self._get_session(session_id, branch_ids))

    def list_orders(self, session_id: int, branch_ids: list[int] | None = None) -> list[OrderOutput]:
        session = self._get_session(session_id, branch_ids)
        orders = self._db.execute(
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.tickets))
            .where(Order.table_session_id == session.id)
            .order_by(Order.id)
        ).scalars().all()

        from .order_service import order_to_output

        return [order_to_output(order) for order in orders]

    def list_sessions(
        self,
        branch_ids: list[int],
        *,
        day: date | None = None,
        status: str | None = None,
        branch_id: int | None = None,
    ) -> TableSessionListOutput:
        """
        Sessions opened on ``day`` (UTC, default today), newest first, with
        the day's closed-session totals.
        """
        day = day or utcnow().date()
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        end = start + timedelta(days=1)

        if branch_id is not None:
            if branch_id not in branch_ids:
                raise BranchAccessError(branch_id)
            branch_ids = [branch_id]

        query = (
            select(TableSession)
            .options(selectinload(TableSession.orders), selectinload(TableSession.table))
            .where(
                TableSession.branch_id.in_(branch_ids),
                TableSession.opened_at >= start,
                TableSession.opened_at < end,
            )
            .order_by(TableSession.opened_at.desc(), TableSession.id.desc())
        )
        if status:
            status_value = status.strip().upper()
            if status_value not in SessionStatus.ALL:
                raise ValidationError(f"Estado de sesión inválido: '{status}'", field="status")
            query = query.where(TableSession.status == status_value)

        sessions = list(self._db.execute(query).scalars().all()) if branch_ids else []
        return TableSessionListOutput(
            date=day.isoformat(),
            sessions=[TableSessionOutput.model_validate(s) for s in sessions],
            totals=daily_totals(sessions),
        )

    def close_session(
        self,
        session_id: int,
        body: CloseSessionRequest,
        *,
        user_id: int | None,
        branch_ids: list[int] | None = None,
    ) -> TableSessionOutput:
        """
        Close an ACTIVE session and free its table.

        Totals are recomputed from the non-cancelled orders; the tip is added
        to the total. A session that is already closed is rejected untouched.
        """
        session = self._get_session(session_id, branch_ids)
        # Lock order matches open_session: table first, then session
        table = self._db.scalar(
            select(Table).where(Table.id == session.table_id).with_for_update()
        )
        session = self._get_session(session_id, branch_ids, for_update=True)
        if session.status != SessionStatus.ACTIVE:
            raise InvalidStateError(
                "Sesión de mesa",
                session.status,
                [SessionStatus.ACTIVE],
                session_id=session_id,
            )

        subtotal, total = session_totals(session.orders)
        now = utcnow()
        session.subtotal_cents = subtotal
        session.tip_cents = body.tip_cents
        session.total_cents = total + body.tip_cents
        session.status = SessionStatus.CLOSED
        session.closed_at = now
        session.closed_by_user_id = user_id
        if body.payment_method:
            session.payment_method = body.payment_method
            session.paid_at = now
        if body.notes is not None:
            session.notes = body.notes

        previous_status = table.status
        table.status = TableStatus.AVAILABLE
        table.touch()

        safe_commit(self._db)
        self._db.refresh(session)

        logger.info(
            "Table session closed",
            session_id=session.id,
            table_id=table.id,
            table_previous_status=previous_status,
            total_cents=session.total_cents,
            tip_cents=session.tip_cents,
            payment_method=session.payment_method,
            user_id=user_id,
        )
        if self._notifier is not None:
            self._notifier.session_closed(session, table)
            self._notifier.table_status_changed(table)
        return TableSessionOutput.model_validate(session)
