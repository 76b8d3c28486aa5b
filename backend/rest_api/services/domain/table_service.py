"""
Table Domain Service.

Every table status change goes through one of the operations here:

    open_session    AVAILABLE, RESERVED          -> OCCUPIED
    request_bill    OCCUPIED                     -> BILL_REQUESTED
    close_session   OCCUPIED, BILL_REQUESTED     -> AVAILABLE
    reserve         AVAILABLE, RESERVED, OOS     -> RESERVED
    release         RESERVED, OOS                -> AVAILABLE
    out_of_service  AVAILABLE, RESERVED, OOS     -> OUT_OF_SERVICE

An occupied table (OCCUPIED or BILL_REQUESTED) can only leave that state by
closing its session.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rest_api.models import Table, TableSession
from shared.config.constants import (
    SessionStatus,
    TableStatus,
    TABLE_OPERATION_SOURCES,
)
from shared.config.logging import tables_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.security.auth import sign_table_order_token
from shared.utils.exceptions import (
    BranchAccessError,
    ConflictError,
    InvalidStateError,
    TableNotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    CloseSessionRequest,
    OpenSessionRequest,
    PublicTableOutput,
    ReserveTableRequest,
    TableOutput,
    TableQROutput,
    TableSessionOutput,
)

if TYPE_CHECKING:
    from rest_api.services.events import Notifier


class TableService:
    """Table queries and the table state machine."""

    def __init__(self, db: Session, notifier: "Notifier | None" = None):
        self._db = db
        self._notifier = notifier

    # =========================================================================
    # Lookups
    # =========================================================================

    def _get_table(
        self,
        table_id: int,
        branch_ids: list[int] | None = None,
        *,
        for_update: bool = False,
    ) -> Table:
        query = select(Table).where(Table.id == table_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        table = self._db.scalar(query)
        if table is None:
            raise TableNotFoundError(table_id)
        if branch_ids is not None and table.branch_id not in branch_ids:
            raise BranchAccessError(table.branch_id, table_id=table_id)
        return table

    def get_active_session(self, table_id: int) -> TableSession | None:
        return self._db.scalar(
            select(TableSession).where(
                TableSession.table_id == table_id,
                TableSession.status == SessionStatus.ACTIVE,
            )
        )

    def _to_output(self, table: Table, session: TableSession | None) -> TableOutput:
        output = TableOutput.model_validate(table)
        if session is not None:
            output.active_session_id = session.id
            output.guest_count = session.guest_count
            output.customer_name = session.customer_name
        return output

    def list_tables(self, branch_ids: list[int], branch_id: int | None = None) -> list[TableOutput]:
        """Active tables with a summary of their open session."""
        if branch_id is not None:
            if branch_id not in branch_ids:
                raise BranchAccessError(branch_id)
            branch_ids = [branch_id]
        if not branch_ids:
            return []

        tables = self._db.execute(
            select(Table)
            .where(Table.branch_id.in_(branch_ids), Table.is_active.is_(True))
            .order_by(Table.sort_order, Table.name)
        ).scalars().all()

        sessions = {}
        if tables:
            rows = self._db.execute(
                select(TableSession).where(
                    TableSession.table_id.in_([t.id for t in tables]),
                    TableSession.status == SessionStatus.ACTIVE,
                )
            ).scalars().all()
            sessions = {s.table_id: s for s in rows}

        return [self._to_output(t, sessions.get(t.id)) for t in tables]

    def get_table(self, table_id: int, branch_ids: list[int] | None = None) -> TableOutput:
        table = self._get_table(table_id, branch_ids)
        return self._to_output(table, self.get_active_session(table.id))

    def get_public_table(self, table_id: int) -> PublicTableOutput:
        """Table info shown to a diner who scanned the QR. Inactive tables do not exist."""
        table = self._get_table(table_id)
        if not table.is_active:
            raise TableNotFoundError(table_id)
        session = self.get_active_session(table.id)
        return PublicTableOutput(
            table_id=table.id,
            table_name=table.name,
            capacity=table.capacity,
            status=table.status,
            active_session_id=session.id if session else None,
            guest_count=session.guest_count if session else None,
            customer_name=session.customer_name if session else None,
        )

    # =========================================================================
    # State machine
    # =========================================================================

    def _ensure_operation(self, table: Table, operation: str) -> None:
        allowed = TABLE_OPERATION_SOURCES[operation]
        if table.status not in allowed:
            raise InvalidStateError(
                "Mesa",
                table.status,
                allowed,
                table_id=table.id,
                operation=operation,
            )

    def _set_status(self, table: Table, status: str, operation: str) -> None:
        previous = table.status
        table.status = status
        table.touch()
        logger.info(
            "Table status changed",
            table_id=table.id,
            operation=operation,
            from_status=previous,
            to_status=status,
        )

    def open_session(
        self,
        table_id: int,
        body: OpenSessionRequest,
        *,
        user_id: int | None,
        branch_ids: list[int] | None = None,
    ) -> TableSessionOutput:
        """
        Seat guests: create an ACTIVE session and mark the table OCCUPIED.

        The table row is locked for the duration and the partial unique index
        on active sessions catches any open that still races through.
        """
        table = self._get_table(table_id, branch_ids, for_update=True)
        if not table.is_active:
            raise ValidationError("La mesa no está activa", table_id=table_id)
        if self.get_active_session(table.id) is not None:
            raise ValidationError("La mesa ya tiene una sesión activa", table_id=table_id)
        self._ensure_operation(table, "open_session")

        session = TableSession(
            table_id=table.id,
            branch_id=table.branch_id,
            customer_name=body.customer_name or table.reservation_name,
            guest_count=body.guest_count,
            notes=body.notes,
            status=SessionStatus.ACTIVE,
            opened_by_user_id=user_id,
            assigned_waiter_id=body.assigned_waiter_id,
        )
        self._db.add(session)
        table.reservation_name = None
        table.reservation_notes = None
        self._set_status(table, TableStatus.OCCUPIED, "open_session")

        try:
            safe_commit(self._db)
        except IntegrityError:
            raise ConflictError("La mesa ya tiene una sesión activa", table_id=table_id)
        self._db.refresh(session)

        logger.info(
            "Table session opened",
            session_id=session.id,
            table_id=table.id,
            guest_count=session.guest_count,
            user_id=user_id,
        )
        if self._notifier is not None:
            self._notifier.session_opened(session, table)
            self._notifier.table_status_changed(table)
        return TableSessionOutput.model_validate(session)

    def close_session(
        self,
        table_id: int,
        body: CloseSessionRequest,
        *,
        user_id: int | None,
        branch_ids: list[int] | None = None,
    ) -> TableSessionOutput:
        """Close the table's active session (same operation as closing by session id)."""
        from .session_service import SessionService

        table = self._get_table(table_id, branch_ids)
        session = self.get_active_session(table.id)
        if session is None:
            raise ValidationError("No hay una sesión activa para esta mesa", table_id=table_id)
        return SessionService(self._db, self._notifier).close_session(
            session.id,
            body,
            user_id=user_id,
            branch_ids=branch_ids,
        )

    def _transition(
        self,
        table_id: int,
        operation: str,
        target: str,
        branch_ids: list[int] | None,
    ) -> Table:
        table = self._get_table(table_id, branch_ids, for_update=True)
        self._ensure_operation(table, operation)
        self._set_status(table, target, operation)
        return table

    def _finish(self, table: Table) -> TableOutput:
        safe_commit(self._db)
        self._db.refresh(table)
        if self._notifier is not None:
            self._notifier.table_status_changed(table)
        return self._to_output(table, self.get_active_session(table.id))

    def request_bill(self, table_id: int, branch_ids: list[int] | None = None) -> TableOutput:
        table = self._transition(table_id, "request_bill", TableStatus.BILL_REQUESTED, branch_ids)
        return self._finish(table)

    def reserve(
        self,
        table_id: int,
        body: ReserveTableRequest,
        branch_ids: list[int] | None = None,
    ) -> TableOutput:
        table = self._transition(table_id, "reserve", TableStatus.RESERVED, branch_ids)
        table.reservation_name = body.customer_name
        table.reservation_notes = body.notes
        return self._finish(table)

    def release(self, table_id: int, branch_ids: list[int] | None = None) -> TableOutput:
        table = self._transition(table_id, "release", TableStatus.AVAILABLE, branch_ids)
        table.reservation_name = None
        table.reservation_notes = None
        return self._finish(table)

    def mark_out_of_service(self, table_id: int, branch_ids: list[int] | None = None) -> TableOutput:
        table = self._transition(table_id, "out_of_service", TableStatus.OUT_OF_SERVICE, branch_ids)
        table.reservation_name = None
        table.reservation_notes = None
        return self._finish(table)

    # =========================================================================
    # QR
    # =========================================================================

    def get_qr(self, table_id: int, branch_ids: list[int] | None = None) -> TableQROutput:
        """Signed order token for the table, bound to its active session if any."""
        table = self._get_table(table_id, branch_ids)
        if not table.is_active:
            raise ValidationError("La mesa no está activa", table_id=table_id)
        session = self.get_active_session(table.id)
        session_id = session.id if session else None

        token, expires_at = sign_table_order_token(table.id, table.branch_id, session_id)
        base_url = settings.frontend_base_url.rstrip("/")
        return TableQROutput(
            table_id=table.id,
            table_name=table.name,
            session_id=session_id,
            token=token,
            qr_code_url=f"{base_url}/#/mesa/{table.id}?t={token}",
            expires_at=expires_at,
        )
