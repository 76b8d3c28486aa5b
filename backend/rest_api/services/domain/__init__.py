"""
Domain Services - application layer.

Routers stay thin and delegate here:

    Router (thin controller)
        ↓
    Service (business logic, one transaction per operation)
        ↓
    Model (SQLAlchemy entity)

Usage:
    from rest_api.services.domain import TableService

    # In router
    service = TableService(db, notifier)
    session = service.open_session(table_id, body, user_id=user_id, branch_ids=ctx["branch_ids"])
"""

from .table_service import TableService
from .session_service import SessionService
from .ticket_service import TicketService
from .order_service import OrderService

__all__ = [
    "TableService",
    "SessionService",
    "TicketService",
    "OrderService",
]
