"""
Table and Session Models: Table, TableSession.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import SessionStatus, TableStatus
from .base import AuditMixin, Base, BigIntPK, utcnow

if TYPE_CHECKING:
    from .branch import Branch
    from .order import Order


class Table(AuditMixin, Base):
    """
    Physical table in a branch.
    Status only changes through the table service operations.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "restaurant_table"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)  # "Mesa 4", "Terraza 2"
    capacity: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    status: Mapped[str] = mapped_column(Text, default=TableStatus.AVAILABLE, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Set while RESERVED
    reservation_name: Mapped[Optional[str]] = mapped_column(Text)
    reservation_notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint("branch_id", "name", name="uq_table_branch_name"),
        Index("ix_table_branch_status", "branch_id", "status"),
    )

    branch: Mapped["Branch"] = relationship(back_populates="tables")
    sessions: Mapped[list["TableSession"]] = relationship(back_populates="table")


class TableSession(Base):
    """
    One occupancy of a table, from open-session until it is closed and paid.
    Sessions are never deleted; CLOSED is terminal.
    """

    __tablename__ = "table_session"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    table_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("restaurant_table.id"), nullable=False, index=True
    )
    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    customer_name: Mapped[Optional[str]] = mapped_column(Text)
    guest_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[str] = mapped_column(Text, default=SessionStatus.ACTIVE, nullable=False)

    opened_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    opened_by_user_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("app_user.id"))
    closed_by_user_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("app_user.id"))
    assigned_waiter_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), index=True
    )

    subtotal_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tip_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(Text)  # CASH, CARD, TRANSFER
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        # At most one ACTIVE session per table
        Index(
            "uq_table_session_active",
            "table_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
        Index("ix_table_session_branch_opened", "branch_id", "opened_at"),
    )

    table: Mapped["Table"] = relationship(back_populates="sessions")
    orders: Mapped[list["Order"]] = relationship(
        back_populates="table_session", order_by="Order.id"
    )

    @property
    def table_name(self) -> str | None:
        return self.table.name if self.table is not None else None

    def __repr__(self) -> str:
        return f"<TableSession(id={self.id}, table_id={self.table_id}, status={self.status})>"
