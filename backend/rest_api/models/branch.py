"""
Branch Model.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .table import Table
    from .catalog import Category


class Branch(AuditMixin, Base):
    """
    A physical restaurant location.
    Tables, categories and staff roles are scoped to a branch.
    """

    __tablename__ = "branch"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(Text)

    tables: Mapped[list["Table"]] = relationship(back_populates="branch")
    categories: Mapped[list["Category"]] = relationship(back_populates="branch")
