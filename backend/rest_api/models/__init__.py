"""
SQLAlchemy ORM Models Package.

- base: Base class, AuditMixin, BigIntPK
- branch: Branch
- user: User, UserBranchRole
- catalog: Category, Product
- table: Table, TableSession
- order: Order, OrderItem, OrderStatusHistory
- kitchen: KitchenTicket, KitchenTicketCounter
"""

from .base import Base, AuditMixin, BigIntPK, utcnow
from .branch import Branch
from .user import User, UserBranchRole
from .catalog import Category, Product
from .table import Table, TableSession
from .order import Order, OrderItem, OrderStatusHistory
from .kitchen import KitchenTicket, KitchenTicketCounter

__all__ = [
    "Base",
    "AuditMixin",
    "BigIntPK",
    "utcnow",
    "Branch",
    "User",
    "UserBranchRole",
    "Category",
    "Product",
    "Table",
    "TableSession",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "KitchenTicket",
    "KitchenTicketCounter",
]
