"""
Centralized constants for the backend application.
Avoids magic strings for roles, statuses, stations and transitions.

Usage:
    from shared.config.constants import Roles, TableStatus, TicketStatus

    if table.status == TableStatus.OCCUPIED:
        ...
"""

from typing import Final


# =============================================================================
# User Roles
# =============================================================================


class Roles:
    """User role constants."""

    ADMIN: Final[str] = "ADMIN"
    MANAGER: Final[str] = "MANAGER"
    KITCHEN: Final[str] = "KITCHEN"
    WAITER: Final[str] = "WAITER"

    ALL: Final[list[str]] = [ADMIN, MANAGER, KITCHEN, WAITER]


# Role groups for common access patterns
MANAGEMENT_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.MANAGER})
STAFF_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.MANAGER, Roles.WAITER})
KITCHEN_ACCESS_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.MANAGER, Roles.KITCHEN})
ALL_STAFF_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.MANAGER, Roles.KITCHEN, Roles.WAITER})


# =============================================================================
# Entity Status Constants
# =============================================================================


class TableStatus:
    """Table status constants."""

    AVAILABLE: Final[str] = "AVAILABLE"
    OCCUPIED: Final[str] = "OCCUPIED"
    RESERVED: Final[str] = "RESERVED"
    OUT_OF_SERVICE: Final[str] = "OUT_OF_SERVICE"
    BILL_REQUESTED: Final[str] = "BILL_REQUESTED"

    ALL: Final[list[str]] = [AVAILABLE, OCCUPIED, RESERVED, OUT_OF_SERVICE, BILL_REQUESTED]


class SessionStatus:
    """Table session status constants."""

    ACTIVE: Final[str] = "ACTIVE"
    CLOSED: Final[str] = "CLOSED"

    ALL: Final[list[str]] = [ACTIVE, CLOSED]


class PaymentMethod:
    """Payment methods recorded when a session is closed."""

    CASH: Final[str] = "CASH"
    CARD: Final[str] = "CARD"
    TRANSFER: Final[str] = "TRANSFER"

    ALL: Final[list[str]] = [CASH, CARD, TRANSFER]


class OrderStatus:
    """Order status constants."""

    CREATED: Final[str] = "CREATED"
    CONFIRMED: Final[str] = "CONFIRMED"
    IN_PREP: Final[str] = "IN_PREP"
    READY: Final[str] = "READY"
    DELIVERED: Final[str] = "DELIVERED"
    CANCELLED: Final[str] = "CANCELLED"

    ALL: Final[list[str]] = [CREATED, CONFIRMED, IN_PREP, READY, DELIVERED, CANCELLED]
    TERMINAL: Final[list[str]] = [DELIVERED, CANCELLED]


class OrderChannel:
    """Order channel / take mode constants."""

    DINE_IN: Final[str] = "DINE_IN"


class TicketStatus:
    """Kitchen ticket status constants."""

    PENDING: Final[str] = "PENDING"
    IN_PROGRESS: Final[str] = "IN_PROGRESS"
    READY: Final[str] = "READY"
    DELIVERED: Final[str] = "DELIVERED"

    ALL: Final[list[str]] = [PENDING, IN_PROGRESS, READY, DELIVERED]
    ACTIVE: Final[list[str]] = [PENDING, IN_PROGRESS, READY]


class Station:
    """Kitchen stations a category can be routed to."""

    KITCHEN: Final[str] = "KITCHEN"
    BAR: Final[str] = "BAR"
    GRILL: Final[str] = "GRILL"
    DESSERTS: Final[str] = "DESSERTS"

    ALL: Final[list[str]] = [KITCHEN, BAR, GRILL, DESSERTS]
    DEFAULT: Final[str] = KITCHEN


# Human ticket number prefix per station ("K001", "B014", ...)
STATION_PREFIXES: Final[dict[str, str]] = {
    Station.KITCHEN: "K",
    Station.BAR: "B",
    Station.GRILL: "G",
    Station.DESSERTS: "D",
}
UNKNOWN_STATION_PREFIX: Final[str] = "X"


# =============================================================================
# Status Transitions
# =============================================================================

# Table state machine: operation -> statuses it may start from
TABLE_OPERATION_SOURCES: Final[dict[str, list[str]]] = {
    "open_session": [TableStatus.AVAILABLE, TableStatus.RESERVED],
    "request_bill": [TableStatus.OCCUPIED],
    "close_session": [TableStatus.OCCUPIED, TableStatus.BILL_REQUESTED],
    "reserve": [TableStatus.AVAILABLE, TableStatus.RESERVED, TableStatus.OUT_OF_SERVICE],
    "release": [TableStatus.RESERVED, TableStatus.OUT_OF_SERVICE],
    "out_of_service": [TableStatus.AVAILABLE, TableStatus.RESERVED, TableStatus.OUT_OF_SERVICE],
}

# Kitchen tickets move strictly forward one step at a time
TICKET_TRANSITIONS: Final[dict[str, list[str]]] = {
    TicketStatus.PENDING: [TicketStatus.IN_PROGRESS],
    TicketStatus.IN_PROGRESS: [TicketStatus.READY],
    TicketStatus.READY: [TicketStatus.DELIVERED],
    TicketStatus.DELIVERED: [],  # Terminal state
}

# Staff may correct an order to any other status until it reaches a terminal one
ORDER_TRANSITIONS: Final[dict[str, list[str]]] = {
    status: (
        []
        if status in OrderStatus.TERMINAL
        else [other for other in OrderStatus.ALL if other != status]
    )
    for status in OrderStatus.ALL
}


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    MIN_GUESTS: Final[int] = 1
    MAX_GUESTS: Final[int] = 50

    MIN_QUANTITY: Final[int] = 1
    MAX_QUANTITY: Final[int] = 99

    MAX_PRICE_CENTS: Final[int] = 100_000_00

    MAX_CUSTOMER_NAME_LENGTH: Final[int] = 120
    MAX_NOTES_LENGTH: Final[int] = 500


# Defaults applied to dine-in orders
DINE_IN_PHONE_PLACEHOLDER: Final[str] = "0000000000"
TABLE_ORDER_SCOPE: Final[str] = "table_order"


def parse_ticket_status(value: str | None) -> str | None:
    """Return the canonical ticket status for a case-insensitive string, or None."""
    if not value:
        return None
    candidate = value.strip().upper()
    return candidate if candidate in TicketStatus.ALL else None


def parse_order_status(value: str | None) -> str | None:
    """Return the canonical order status for a case-insensitive string, or None."""
    if not value:
        return None
    candidate = value.strip().upper()
    return candidate if candidate in OrderStatus.ALL else None


def station_prefix(station: str) -> str:
    """Ticket number prefix for a station."""
    return STATION_PREFIXES.get(station, UNKNOWN_STATION_PREFIX)
