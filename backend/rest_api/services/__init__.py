"""
Services module for business logic.

- domain/: table, session, order and kitchen ticket services
- events/: realtime notifications for staff clients

Usage:
    from rest_api.services.domain import OrderService
    from rest_api.services.events import Notifier, get_notifier
"""

from .domain import (
    TableService,
    SessionService,
    TicketService,
    OrderService,
)
from .events import Notifier, get_notifier

__all__ = [
    "TableService",
    "SessionService",
    "TicketService",
    "OrderService",
    "Notifier",
    "get_notifier",
]
