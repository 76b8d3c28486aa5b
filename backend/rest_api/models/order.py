"""
Order Models: Order, OrderItem, OrderStatusHistory.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import OrderChannel, OrderStatus
from .base import Base, BigIntPK, utcnow

if TYPE_CHECKING:
    from .table import TableSession
    from .kitchen import KitchenTicket


class Order(Base):
    """
    A placed order. Dine-in orders belong to a table session.
    """

    __tablename__ = "customer_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    table_session_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("table_session.id"), index=True
    )
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(Text, nullable=False)
    channel: Mapped[str] = mapped_column(Text, default=OrderChannel.DINE_IN, nullable=False)
    take_mode: Mapped[str] = mapped_column(Text, default=OrderChannel.DINE_IN, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text)
    reference: Mapped[Optional[str]] = mapped_column(Text)
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    note: Mapped[Optional[str]] = mapped_column(Text)
    # Customer-facing tracking code
    public_code: Mapped[Optional[str]] = mapped_column(Text, unique=True)

    subtotal_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    discount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tip_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[str] = mapped_column(Text, default=OrderStatus.CREATED, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    __table_args__ = (
        Index("ix_order_branch_created", "branch_id", "created_at"),
    )

    table_session: Mapped[Optional["TableSession"]] = relationship(back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", order_by="OrderItem.id", cascade="all, delete-orphan"
    )
    history: Mapped[list["OrderStatusHistory"]] = relationship(
        back_populates="order", order_by="OrderStatusHistory.id", cascade="all, delete-orphan"
    )
    tickets: Mapped[list["KitchenTicket"]] = relationship(
        back_populates="order", order_by="KitchenTicket.id"
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, status={self.status}, total_cents={self.total_cents})>"


class OrderItem(Base):
    """
    Line snapshot. Name and prices are copied from the catalog so that past
    orders do not change when products do.
    """

    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), nullable=False, index=True
    )
    product_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("product.id"))
    name_snapshot: Mapped[str] = mapped_column(Text, nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    modifiers_total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    line_total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    modifiers: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON)

    order: Mapped["Order"] = relationship(back_populates="items")


class OrderStatusHistory(Base):
    """Append-only audit trail of order status changes."""

    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(Text, nullable=False)
    changed_by_user_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("app_user.id"))
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    order: Mapped["Order"] = relationship(back_populates="history")
