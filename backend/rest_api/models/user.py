"""
User and Authentication Models.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK


class User(AuditMixin, Base):
    """
    A staff member (waiter, kitchen, manager, admin).
    Users can have different roles in different branches.
    """

    __tablename__ = "app_user"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    password: Mapped[str] = mapped_column(Text, nullable=False)  # bcrypt hash
    first_name: Mapped[Optional[str]] = mapped_column(Text)
    last_name: Mapped[Optional[str]] = mapped_column(Text)

    branch_roles: Mapped[list["UserBranchRole"]] = relationship(back_populates="user")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"


class UserBranchRole(AuditMixin, Base):
    """Role of a user in one branch."""

    __tablename__ = "user_branch_role"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), nullable=False, index=True
    )
    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(Text, nullable=False)  # WAITER, KITCHEN, MANAGER, ADMIN

    __table_args__ = (
        UniqueConstraint("user_id", "branch_id", "role", name="uq_user_branch_role"),
    )

    user: Mapped["User"] = relationship(back_populates="branch_roles")
