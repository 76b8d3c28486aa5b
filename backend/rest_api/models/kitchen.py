"""
Kitchen Models: KitchenTicket, KitchenTicketCounter.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import TicketStatus
from .base import Base, BigIntPK, utcnow

if TYPE_CHECKING:
    from .order import Order


class KitchenTicket(Base):
    """
    One station's share of an order.

    Items are a JSON snapshot ``[{productId, name, qty, modifiers}]`` taken
    when the ticket is created and never edited afterwards.
    """

    __tablename__ = "kitchen_ticket"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), nullable=False, index=True
    )
    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    station: Mapped[str] = mapped_column(Text, nullable=False)  # KITCHEN, BAR, GRILL, DESSERTS
    status: Mapped[str] = mapped_column(Text, default=TicketStatus.PENDING, nullable=False)
    ticket_number: Mapped[str] = mapped_column(Text, nullable=False)  # "K001"
    items_json: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    assigned_user_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("app_user.id"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    # Each stamped once, on the first move into the matching status
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    ready_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_kitchen_ticket_station_status", "station", "status"),
        Index("ix_kitchen_ticket_station_created", "station", "created_at"),
    )

    order: Mapped["Order"] = relationship(back_populates="tickets")

    def __repr__(self) -> str:
        return f"<KitchenTicket(id={self.id}, number={self.ticket_number}, status={self.status})>"


class KitchenTicketCounter(Base):
    """
    Last ticket number handed out per station and business day.
    Incremented atomically with UPDATE ... RETURNING.
    """

    __tablename__ = "kitchen_ticket_counter"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    station: Mapped[str] = mapped_column(Text, nullable=False)
    business_date: Mapped[date] = mapped_column(Date, nullable=False)
    last_value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("station", "business_date", name="uq_ticket_counter_station_date"),
    )
