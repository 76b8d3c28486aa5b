"""
Catalog Models: Category, Product.

Only the fields kitchen routing and order pricing read are mapped here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .branch import Branch


class Category(AuditMixin, Base):
    """
    Menu category.
    ``default_station`` decides which kitchen station prepares its products.
    """

    __tablename__ = "category"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    # KITCHEN, BAR, GRILL, DESSERTS; NULL routes to KITCHEN
    default_station: Mapped[Optional[str]] = mapped_column(Text)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    branch: Mapped["Branch"] = relationship(back_populates="categories")
    products: Mapped[list["Product"]] = relationship(back_populates="category")


class Product(AuditMixin, Base):
    """Sellable product with its list price."""

    __tablename__ = "product"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    category_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("category.id"), index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    # Price of a double portion, when the product offers one
    double_price_cents: Mapped[Optional[int]] = mapped_column(Integer)

    category: Mapped[Optional["Category"]] = relationship(back_populates="products")
