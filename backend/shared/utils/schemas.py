"""
Shared Pydantic schemas used across the application.

Wire format is camelCase (``tableId``, ``totalCents``); models accept either
camelCase or snake_case on input.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from shared.config.constants import Limits
from shared.utils.kitchen_schemas import KitchenTicketOutput


# =============================================================================
# Common Types
# =============================================================================

Role = Literal["WAITER", "KITCHEN", "MANAGER", "ADMIN"]
TableStatusLiteral = Literal["AVAILABLE", "OCCUPIED", "RESERVED", "OUT_OF_SERVICE", "BILL_REQUESTED"]
SessionStatusLiteral = Literal["ACTIVE", "CLOSED"]
PaymentMethodLiteral = Literal["CASH", "CARD", "TRANSFER"]


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# Authentication Schemas
# =============================================================================


class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str


class UserInfo(BaseModel):
    """Basic user information included in auth responses."""

    id: int
    email: str
    branch_ids: list[int]
    roles: list[str]


class LoginResponse(BaseModel):
    """Login response with JWT token."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int  # seconds
    user: UserInfo


# =============================================================================
# Table Schemas
# =============================================================================


class TableOutput(CamelModel):
    """Staff view of a table with its active session summary."""

    id: int
    branch_id: int
    name: str
    capacity: int
    status: TableStatusLiteral
    sort_order: int = 0
    is_active: bool = True
    reservation_name: str | None = None
    reservation_notes: str | None = None
    active_session_id: int | None = None
    guest_count: int | None = None
    customer_name: str | None = None


class PublicTableOutput(CamelModel):
    """Public (QR) view of a table."""

    table_id: int
    table_name: str
    capacity: int
    status: TableStatusLiteral
    active_session_id: int | None = None
    guest_count: int | None = None
    customer_name: str | None = None


class OpenSessionRequest(CamelModel):
    """Open a dine-in session on a table."""

    guest_count: int = Field(default=1, ge=Limits.MIN_GUESTS, le=Limits.MAX_GUESTS)
    customer_name: str | None = Field(default=None, max_length=Limits.MAX_CUSTOMER_NAME_LENGTH)
    notes: str | None = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)
    assigned_waiter_id: int | None = None


class ReserveTableRequest(CamelModel):
    """Reserve a table."""

    customer_name: str | None = Field(default=None, max_length=Limits.MAX_CUSTOMER_NAME_LENGTH)
    notes: str | None = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)


class CloseSessionRequest(CamelModel):
    """Close a session. Payment method and tip are optional on the table-level alias."""

    payment_method: PaymentMethodLiteral | None = None
    tip_cents: int = Field(default=0, ge=0, le=Limits.MAX_PRICE_CENTS)
    notes: str | None = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)


class TableQROutput(CamelModel):
    """QR payload for table self-ordering."""

    table_id: int
    table_name: str
    session_id: int | None = None
    token: str
    qr_code_url: str
    expires_at: datetime


# =============================================================================
# Order Schemas
# =============================================================================


class OrderItemInput(CamelModel):
    """
    A line in an order request.

    Price fields are honored only on the staff intake path; the public path
    always prices from the catalog.
    """

    product_id: int
    qty: int = Field(ge=Limits.MIN_QUANTITY, le=Limits.MAX_QUANTITY)
    unit_price_cents: int | None = Field(default=None, ge=0, le=Limits.MAX_PRICE_CENTS)
    modifiers_total_cents: int = Field(default=0, ge=0, le=Limits.MAX_PRICE_CENTS)
    line_total_cents: int | None = Field(default=None, ge=0)
    modifiers: list[dict[str, Any]] | None = None
    use_double_price: bool = False


class CreateTableOrderRequest(CamelModel):
    """Create a dine-in order on a table session."""

    items: list[OrderItemInput]
    note: str | None = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)
    discount_cents: int = Field(default=0, ge=0)


class OrderItemOutput(CamelModel):
    """Order line snapshot."""

    id: int
    product_id: int | None = None
    name_snapshot: str
    qty: int
    unit_price_cents: int
    modifiers_total_cents: int
    line_total_cents: int
    modifiers: list[dict[str, Any]] | None = None


class OrderStatusHistoryOutput(CamelModel):
    """One entry of an order's status trail."""

    status: str
    changed_by_user_id: int | None = None
    changed_at: datetime


class OrderOutput(CamelModel):
    """Order with its items and kitchen tickets."""

    id: int
    branch_id: int
    table_session_id: int | None = None
    customer_name: str
    phone: str
    channel: str
    take_mode: str
    note: str | None = None
    public_code: str | None = None
    subtotal_cents: int
    discount_cents: int
    tip_cents: int
    total_cents: int
    status: str
    created_at: datetime
    items: list[OrderItemOutput] = []
    tickets: list[KitchenTicketOutput] = []


class OrderDetailOutput(OrderOutput):
    """Order detail including status history."""

    history: list[OrderStatusHistoryOutput] = []


class OrderSummaryOutput(CamelModel):
    """Compact order line used inside session detail."""

    id: int
    status: str
    subtotal_cents: int
    total_cents: int
    created_at: datetime


class UpdateOrderStatusRequest(CamelModel):
    """Change an order's status (case-insensitive)."""

    status: str


# =============================================================================
# Session Schemas
# =============================================================================


class TableSessionOutput(CamelModel):
    """Table session with totals and its orders."""

    id: int
    table_id: int
    table_name: str | None = None
    branch_id: int
    customer_name: str | None = None
    guest_count: int
    status: SessionStatusLiteral
    opened_at: datetime
    closed_at: datetime | None = None
    opened_by_user_id: int | None = None
    closed_by_user_id: int | None = None
    assigned_waiter_id: int | None = None
    subtotal_cents: int
    total_cents: int
    tip_cents: int
    payment_method: PaymentMethodLiteral | None = None
    paid_at: datetime | None = None
    notes: str | None = None
    orders: list[OrderSummaryOutput] = []


class DailyTotalsOutput(CamelModel):
    """Totals of closed sessions for the listed day, by payment method."""

    cash_cents: int = 0
    card_cents: int = 0
    transfer_cents: int = 0
    tip_cents: int = 0
    total_cents: int = 0
    closed_sessions: int = 0


class TableSessionListOutput(CamelModel):
    """Session listing with daily totals."""

    date: str
    sessions: list[TableSessionOutput]
    totals: DailyTotalsOutput
