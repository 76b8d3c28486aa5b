from datetime import datetime
from typing import Any, List, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Station types
StationType = Literal["KITCHEN", "BAR", "GRILL", "DESSERTS"]
TicketStatus = Literal["PENDING", "IN_PROGRESS", "READY", "DELIVERED"]


class _KitchenModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class KitchenTicketItemSnapshot(_KitchenModel):
    """One item as it was when the ticket was created."""
    product_id: int | None = None
    name: str
    qty: int
    modifiers: List[Any] | None = None


class KitchenTicketOutput(_KitchenModel):
    """Full kitchen ticket as shown on kitchen displays."""
    id: int
    order_id: int
    branch_id: int
    station: StationType
    status: TicketStatus
    ticket_number: str
    notes: str | None = None
    assigned_user_id: int | None = None
    table_name: str | None = None
    customer_name: str | None = None
    items: List[KitchenTicketItemSnapshot]
    created_at: datetime
    started_at: datetime | None = None
    ready_at: datetime | None = None
    delivered_at: datetime | None = None


class ListTicketsResponse(_KitchenModel):
    """Kitchen tickets ordered by creation time."""
    tickets: List[KitchenTicketOutput]


class UpdateTicketStatusRequest(_KitchenModel):
    """Request to update ticket status. Parsed case-insensitively by the service."""
    status: str = Field(min_length=1)
    notes: str | None = Field(default=None, max_length=500)
