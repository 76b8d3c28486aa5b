"""
Table sessions router.
Session listing with daily totals, session detail, ordering and closing.
CLEAN-ARCH: Thin router delegating to SessionService and OrderService.
"""

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from rest_api.services.domain import OrderService, SessionService
from rest_api.services.events import Notifier, get_notifier
from shared.config.constants import STAFF_ROLES
from shared.infrastructure.db import get_db
from shared.security.auth import (
    current_user_context,
    optional_table_context,
    optional_user_context,
    require_roles,
    user_id_of,
)
from shared.utils.schemas import (
    CloseSessionRequest,
    CreateTableOrderRequest,
    OrderOutput,
    TableSessionListOutput,
    TableSessionOutput,
)


router = APIRouter(prefix="/api/table-sessions", tags=["table-sessions"])


@router.get("", response_model=TableSessionListOutput)
def list_sessions(
    date_filter: date | None = Query(None, alias="date", description="Business day (UTC), defaults to today"),
    status_filter: str | None = Query(None, alias="status"),
    branch_id: int | None = Query(None),
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TableSessionListOutput:
    """
    Sessions opened on the given day, newest first, with the day's
    cash/card/transfer totals of closed sessions.

    Requires WAITER, MANAGER, or ADMIN role.
    """
    require_roles(ctx, STAFF_ROLES)
    return SessionService(db).list_sessions(
        ctx["branch_ids"],
        day=date_filter,
        status=status_filter,
        branch_id=branch_id,
    )


@router.get("/{session_id}", response_model=TableSessionOutput)
def get_session(
    session_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TableSessionOutput:
    require_roles(ctx, STAFF_ROLES)
    return SessionService(db).get_session(session_id, ctx["branch_ids"])


@router.get("/{session_id}/orders", response_model=list[OrderOutput])
def list_session_orders(
    session_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[OrderOutput]:
    require_roles(ctx, STAFF_ROLES)
    return SessionService(db).list_orders(session_id, ctx["branch_ids"])


@router.post("/{session_id}/orders", response_model=OrderOutput, status_code=status.HTTP_201_CREATED)
def create_session_order(
    session_id: int,
    body: CreateTableOrderRequest,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    user_ctx: dict[str, Any] | None = Depends(optional_user_context),
    table_ctx: dict | None = Depends(optional_table_context),
) -> OrderOutput:
    """
    Add an order to an ACTIVE session.

    Accepts a staff token (WAITER, MANAGER, ADMIN) or an X-Table-Token for
    the session's table.
    """
    if user_ctx is None and table_ctx is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Se requiere un token de personal o X-Table-Token",
        )
    if user_ctx is not None:
        require_roles(user_ctx, STAFF_ROLES)
    return OrderService(db, notifier).create_session_order(
        session_id,
        body,
        user_ctx=user_ctx,
        table_ctx=table_ctx,
    )


@router.post("/{session_id}/close", response_model=TableSessionOutput)
def close_session(
    session_id: int,
    body: CloseSessionRequest | None = None,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TableSessionOutput:
    """
    Close the session, record payment and tip, and free the table.

    Requires WAITER, MANAGER, or ADMIN role.
    """
    require_roles(ctx, STAFF_ROLES)
    return SessionService(db, notifier).close_session(
        session_id,
        body or CloseSessionRequest(),
        user_id=user_id_of(ctx),
        branch_ids=ctx["branch_ids"],
    )
