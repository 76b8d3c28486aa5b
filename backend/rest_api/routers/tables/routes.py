"""
Tables router.
Table listing and the table state machine operations.
CLEAN-ARCH: Thin router delegating to TableService.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from rest_api.services.domain import TableService
from rest_api.services.events import Notifier, get_notifier
from shared.config.constants import STAFF_ROLES
from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context, require_roles, user_id_of
from shared.utils.schemas import (
    CloseSessionRequest,
    OpenSessionRequest,
    ReserveTableRequest,
    TableOutput,
    TableQROutput,
    TableSessionOutput,
)


router = APIRouter(prefix="/api/tables", tags=["tables"])


def _service(db: Session, notifier: Notifier | None = None) -> TableService:
    return TableService(db, notifier)


@router.get("", response_model=list[TableOutput])
def list_tables(
    branch_id: int | None = Query(None, description="Filter by branch"),
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[TableOutput]:
    """
    Tables of the user's branches with their active session summary.

    Requires WAITER, MANAGER, or ADMIN role.
    """
    require_roles(ctx, STAFF_ROLES)
    return _service(db).list_tables(ctx["branch_ids"], branch_id)


@router.get("/{table_id}", response_model=TableOutput)
def get_table(
    table_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TableOutput:
    require_roles(ctx, STAFF_ROLES)
    return _service(db).get_table(table_id, ctx["branch_ids"])


@router.post("/{table_id}/open-session", response_model=TableSessionOutput, status_code=status.HTTP_201_CREATED)
def open_session(
    table_id: int,
    body: OpenSessionRequest | None = None,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TableSessionOutput:
    """
    Seat guests on an AVAILABLE (or RESERVED) table.

    Requires WAITER, MANAGER, or ADMIN role.
    """
    require_roles(ctx, STAFF_ROLES)
    return _service(db, notifier).open_session(
        table_id,
        body or OpenSessionRequest(),
        user_id=user_id_of(ctx),
        branch_ids=ctx["branch_ids"],
    )


@router.post("/{table_id}/close-session", response_model=TableSessionOutput)
def close_session(
    table_id: int,
    body: CloseSessionRequest | None = None,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TableSessionOutput:
    """Close the table's active session; same as POST /api/table-sessions/{id}/close."""
    require_roles(ctx, STAFF_ROLES)
    return _service(db, notifier).close_session(
        table_id,
        body or CloseSessionRequest(),
        user_id=user_id_of(ctx),
        branch_ids=ctx["branch_ids"],
    )


@router.post("/{table_id}/request-bill", response_model=TableOutput)
def request_bill(
    table_id: int,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TableOutput:
    require_roles(ctx, STAFF_ROLES)
    return _service(db, notifier).request_bill(table_id, ctx["branch_ids"])


@router.post("/{table_id}/reserve", response_model=TableOutput)
def reserve_table(
    table_id: int,
    body: ReserveTableRequest | None = None,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TableOutput:
    require_roles(ctx, STAFF_ROLES)
    return _service(db, notifier).reserve(table_id, body or ReserveTableRequest(), ctx["branch_ids"])


@router.post("/{table_id}/release", response_model=TableOutput)
def release_table(
    table_id: int,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TableOutput:
    require_roles(ctx, STAFF_ROLES)
    return _service(db, notifier).release(table_id, ctx["branch_ids"])


@router.post("/{table_id}/out-of-service", response_model=TableOutput)
def mark_out_of_service(
    table_id: int,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TableOutput:
    require_roles(ctx, STAFF_ROLES)
    return _service(db, notifier).mark_out_of_service(table_id, ctx["branch_ids"])


@router.get("/{table_id}/qr", response_model=TableQROutput)
def get_table_qr(
    table_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TableQROutput:
    """Signed order token and URL to print in the table's QR code."""
    require_roles(ctx, STAFF_ROLES)
    return _service(db).get_qr(table_id, ctx["branch_ids"])
