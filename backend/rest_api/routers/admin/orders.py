"""
Order management endpoints: detail with history and status changes.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rest_api.services.domain import OrderService
from rest_api.services.events import Notifier, get_notifier
from shared.config.constants import STAFF_ROLES
from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context, require_roles, user_id_of
from shared.utils.schemas import OrderDetailOutput, UpdateOrderStatusRequest


router = APIRouter(prefix="/orders", tags=["admin-orders"])


@router.get("/{order_id}", response_model=OrderDetailOutput)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderDetailOutput:
    """Order with items, kitchen tickets and status history."""
    require_roles(ctx, STAFF_ROLES)
    return OrderService(db).get_order(order_id, ctx["branch_ids"])


@router.put("/{order_id}/status", response_model=OrderDetailOutput)
def update_order_status(
    order_id: int,
    body: UpdateOrderStatusRequest,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderDetailOutput:
    """
    Change an order's status and append it to the history.
    DELIVERED and CANCELLED orders cannot change again.

    Requires WAITER, MANAGER, or ADMIN role.
    """
    require_roles(ctx, STAFF_ROLES)
    return OrderService(db, notifier).update_status(
        order_id,
        body.status,
        user_id=user_id_of(ctx),
        branch_ids=ctx["branch_ids"],
    )
