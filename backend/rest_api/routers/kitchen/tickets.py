"""
Kitchen Ticket router.
Station displays list tickets and advance them through their statuses.
CLEAN-ARCH: Thin router delegating to TicketService.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rest_api.services.domain import TicketService
from rest_api.services.events import Notifier, get_notifier
from shared.config.constants import ALL_STAFF_ROLES, KITCHEN_ACCESS_ROLES
from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context, require_roles, user_id_of
from shared.utils.kitchen_schemas import (
    KitchenTicketOutput,
    ListTicketsResponse,
    UpdateTicketStatusRequest,
)

router = APIRouter(prefix="/api/admin/kitchen-tickets", tags=["kitchen-tickets"])


@router.get("", response_model=ListTicketsResponse)
def list_tickets(
    station: str | None = Query(None, description="KITCHEN, BAR, GRILL or DESSERTS"),
    status_filter: str | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> ListTicketsResponse:
    """
    Tickets of the user's branches, oldest first.
    DELIVERED tickets are only listed when asked for by status.

    Requires KITCHEN, MANAGER, or ADMIN role.
    """
    require_roles(ctx, KITCHEN_ACCESS_ROLES)
    tickets = TicketService(db).list_tickets(ctx["branch_ids"], station=station, status=status_filter)
    return ListTicketsResponse(tickets=tickets)


@router.get("/{ticket_id}", response_model=KitchenTicketOutput)
def get_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> KitchenTicketOutput:
    """
    Get details of a specific kitchen ticket.
    Requires KITCHEN, WAITER, MANAGER, or ADMIN role.
    """
    require_roles(ctx, ALL_STAFF_ROLES)
    return TicketService(db).get_ticket(ticket_id, ctx["branch_ids"])


@router.put("/{ticket_id}/status", response_model=KitchenTicketOutput)
def update_ticket_status(
    ticket_id: int,
    body: UpdateTicketStatusRequest,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> KitchenTicketOutput:
    """
    Move a ticket to its next status (case-insensitive).
    Requires KITCHEN, WAITER, MANAGER, or ADMIN role.
    """
    require_roles(ctx, ALL_STAFF_ROLES)
    return TicketService(db, notifier).update_status(
        ticket_id,
        body.status,
        notes=body.notes,
        user_id=user_id_of(ctx),
        branch_ids=ctx["branch_ids"],
    )
