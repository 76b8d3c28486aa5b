"""
Public table endpoints used by the diner's device after scanning the QR.
No staff authentication; an X-Table-Token, when sent, is checked.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from rest_api.services.domain import OrderService, TableService
from rest_api.services.events import Notifier, get_notifier
from shared.infrastructure.db import get_db
from shared.security.auth import optional_table_context
from shared.utils.schemas import CreateTableOrderRequest, OrderOutput, PublicTableOutput


router = APIRouter(prefix="/api/public/tables", tags=["public"])


@router.get("/{table_id}", response_model=PublicTableOutput)
def get_public_table(table_id: int, db: Session = Depends(get_db)) -> PublicTableOutput:
    """Table name, status and the open session summary."""
    return TableService(db).get_public_table(table_id)


@router.post("/{table_id}/orders", response_model=OrderOutput, status_code=status.HTTP_201_CREATED)
def create_table_order(
    table_id: int,
    body: CreateTableOrderRequest,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    table_ctx: dict | None = Depends(optional_table_context),
) -> OrderOutput:
    """
    Place an order on the table's active session.

    Prices always come from the catalog. Fails with 400 when the table has
    no open session.
    """
    return OrderService(db, notifier).create_public_table_order(table_id, body, table_ctx)
