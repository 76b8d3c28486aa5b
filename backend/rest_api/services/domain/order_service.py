"""
Order Domain Service.

Dine-in order intake. The public (QR) path and the staff path both end in
``_create_dine_in_order``, which writes the order, its items, the first
history row and the kitchen tickets in a single commit.

Pricing differs by path:
- public: every unit price comes from the catalog, client prices are ignored
- staff: client unit/line prices are trusted when sent (double portions,
  modifier surcharges); the catalog fills in what the client omits
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import (
    Order,
    OrderItem,
    OrderStatusHistory,
    Product,
    Table,
    TableSession,
    utcnow,
)
from shared.config.constants import (
    DINE_IN_PHONE_PLACEHOLDER,
    ORDER_TRANSITIONS,
    OrderChannel,
    OrderStatus,
    SessionStatus,
    parse_order_status,
)
from shared.config.logging import orders_logger as logger
from shared.infrastructure.db import safe_commit
from shared.security.auth import user_id_of
from shared.utils.exceptions import (
    BranchAccessError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    OrderNotFoundError,
    SessionNotFoundError,
    TableNotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    CreateTableOrderRequest,
    OrderDetailOutput,
    OrderItemInput,
    OrderItemOutput,
    OrderOutput,
    OrderStatusHistoryOutput,
)
from .session_service import session_totals
from .ticket_service import TicketService, ticket_to_output

if TYPE_CHECKING:
    from rest_api.services.events import Notifier

PUBLIC_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
PUBLIC_CODE_LENGTH = 8


def generate_public_code() -> str:
    """Short customer-facing tracking code, without look-alike characters."""
    return "".join(secrets.choice(PUBLIC_CODE_ALPHABET) for _ in range(PUBLIC_CODE_LENGTH))


def order_to_output(order: Order, *, with_history: bool = False) -> OrderOutput:
    """Order DTO with items and kitchen tickets (and history for the detail view)."""
    fields: dict[str, Any] = {
        "id": order.id,
        "branch_id": order.branch_id,
        "table_session_id": order.table_session_id,
        "customer_name": order.customer_name,
        "phone": order.phone,
        "channel": order.channel,
        "take_mode": order.take_mode,
        "note": order.note,
        "public_code": order.public_code,
        "subtotal_cents": order.subtotal_cents,
        "discount_cents": order.discount_cents,
        "tip_cents": order.tip_cents,
        "total_cents": order.total_cents,
        "status": order.status,
        "created_at": order.created_at,
        "items": [OrderItemOutput.model_validate(item) for item in order.items],
        "tickets": [ticket_to_output(ticket) for ticket in order.tickets],
    }
    if with_history:
        fields["history"] = [OrderStatusHistoryOutput.model_validate(h) for h in order.history]
        return OrderDetailOutput(**fields)
    return OrderOutput(**fields)


@dataclass
class PricedLine:
    """One order line after pricing."""

    product: Product
    qty: int
    unit_price_cents: int
    modifiers_total_cents: int
    line_total_cents: int
    modifiers: list[dict[str, Any]] | None


class OrderService:
    """Domain service for order intake and order status."""

    def __init__(self, db: Session, notifier: "Notifier | None" = None):
        self._db = db
        self._notifier = notifier

    # =========================================================================
    # Pricing
    # =========================================================================

    def _load_products(self, items: list[OrderItemInput]) -> dict[int, Product]:
        product_ids = {item.product_id for item in items}
        products = self._db.execute(
            select(Product).where(Product.id.in_(product_ids), Product.is_active.is_(True))
        ).scalars().all()
        by_id = {p.id: p for p in products}
        for product_id in product_ids:
            if product_id not in by_id:
                raise NotFoundError("Producto", product_id)
        return by_id

    @staticmethod
    def _catalog_price(product: Product, use_double_price: bool) -> int:
        if use_double_price and product.double_price_cents is not None:
            return product.double_price_cents
        return product.price_cents

    def price_from_catalog(self, items: list[OrderItemInput]) -> list[PricedLine]:
        """Public pricing: catalog only, no surcharges taken from the client."""
        products = self._load_products(items)
        lines = []
        for item in items:
            product = products[item.product_id]
            unit = self._catalog_price(product, item.use_double_price)
            lines.append(
                PricedLine(
                    product=product,
                    qty=item.qty,
                    unit_price_cents=unit,
                    modifiers_total_cents=0,
                    line_total_cents=unit * item.qty,
                    modifiers=item.modifiers,
                )
            )
        return lines

    def price_trusting_client(self, items: list[OrderItemInput]) -> list[PricedLine]:
        """Staff pricing: client prices win, catalog fills the gaps."""
        products = self._load_products(items)
        lines = []
        for item in items:
            product = products[item.product_id]
            unit = item.unit_price_cents
            if unit is None:
                unit = self._catalog_price(product, item.use_double_price)
            line_total = item.line_total_cents
            if line_total is None:
                line_total = (unit + item.modifiers_total_cents) * item.qty
            lines.append(
                PricedLine(
                    product=product,
                    qty=item.qty,
                    unit_price_cents=unit,
                    modifiers_total_cents=item.modifiers_total_cents,
                    line_total_cents=line_total,
                    modifiers=item.modifiers,
                )
            )
        return lines

    # =========================================================================
    # Intake
    # =========================================================================

    def _lock_active_session(self, session_id: int) -> TableSession:
        session = self._db.scalar(
            select(TableSession)
            .where(TableSession.id == session_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.status != SessionStatus.ACTIVE:
            raise InvalidStateError(
                "Sesión de mesa",
                session.status,
                [SessionStatus.ACTIVE],
                session_id=session_id,
            )
        return session

    def create_public_table_order(
        self,
        table_id: int,
        body: CreateTableOrderRequest,
        table_ctx: dict[str, int | None] | None = None,
    ) -> OrderOutput:
        """
        Diner order from the table QR.

        When a table token is sent it must be for this table (and for the
        current session, if it names one).
        """
        if not body.items:
            raise ValidationError("El pedido debe tener al menos un item")

        table = self._db.scalar(
            select(Table).where(Table.id == table_id, Table.is_active.is_(True))
        )
        if table is None:
            raise TableNotFoundError(table_id)

        session = self._db.scalar(
            select(TableSession).where(
                TableSession.table_id == table.id,
                TableSession.status == SessionStatus.ACTIVE,
            )
        )
        if session is None:
            raise ValidationError(
                "La mesa no tiene una sesión activa. Pida a un mozo que abra la mesa.",
                table_id=table_id,
            )

        if table_ctx is not None:
            if table_ctx["table_id"] != table.id:
                raise ForbiddenError("pedir en esta mesa", table_id=table_id)
            if table_ctx["session_id"] is not None and table_ctx["session_id"] != session.id:
                raise ForbiddenError("pedir en esta sesión", session_id=session.id)

        lines = self.price_from_catalog(body.items)
        return self._create_dine_in_order(
            session.id,
            lines,
            note=body.note,
            discount_cents=body.discount_cents,
            user_id=None,
        )

    def create_session_order(
        self,
        session_id: int,
        body: CreateTableOrderRequest,
        *,
        user_ctx: dict[str, Any] | None = None,
        table_ctx: dict[str, int | None] | None = None,
    ) -> OrderOutput:
        """
        Staff order on a session, or a QR order addressed by session id.

        A table token that names a session only works for that session.
        """
        if user_ctx is None and table_ctx is None:
            raise ForbiddenError("crear pedidos sin credenciales")
        if not body.items:
            raise ValidationError("El pedido debe tener al menos un item")

        session = self._db.scalar(select(TableSession).where(TableSession.id == session_id))
        if session is None:
            raise SessionNotFoundError(session_id)

        if table_ctx is not None:
            if table_ctx["session_id"] is not None and table_ctx["session_id"] != session.id:
                raise ForbiddenError(
                    "pedir en esta sesión",
                    token_session_id=table_ctx["session_id"],
                    session_id=session.id,
                )
            if table_ctx["table_id"] != session.table_id:
                raise ForbiddenError("pedir en esta mesa", table_id=session.table_id)
        if user_ctx is not None and session.branch_id not in user_ctx.get("branch_ids", []):
            raise BranchAccessError(session.branch_id, session_id=session_id)

        lines = self.price_trusting_client(body.items)
        user_id = user_id_of(user_ctx)
        return self._create_dine_in_order(
            session.id,
            lines,
            note=body.note,
            discount_cents=body.discount_cents,
            user_id=user_id,
        )

    def _create_dine_in_order(
        self,
        session_id: int,
        lines: list[PricedLine],
        *,
        note: str | None,
        discount_cents: int,
        user_id: int | None,
    ) -> OrderOutput:
        if not lines:
            raise ValidationError("El pedido debe tener al menos un item")

        session = self._lock_active_session(session_id)
        table = session.table

        subtotal = sum(line.line_total_cents for line in lines)
        discount = min(discount_cents, subtotal)
        order = Order(
            branch_id=session.branch_id,
            table_session_id=session.id,
            customer_name=session.customer_name or f"Mesa {table.name}",
            phone=DINE_IN_PHONE_PLACEHOLDER,
            channel=OrderChannel.DINE_IN,
            take_mode=OrderChannel.DINE_IN,
            note=note,
            public_code=generate_public_code(),
            subtotal_cents=subtotal,
            discount_cents=discount,
            tip_cents=0,
            total_cents=subtotal - discount,
            status=OrderStatus.CREATED,
        )
        self._db.add(order)
        self._db.flush()

        items = [
            OrderItem(
                order_id=order.id,
                product_id=line.product.id,
                name_snapshot=line.product.name,
                qty=line.qty,
                unit_price_cents=line.unit_price_cents,
                modifiers_total_cents=line.modifiers_total_cents,
                line_total_cents=line.line_total_cents,
                modifiers=line.modifiers,
            )
            for line in lines
        ]
        self._db.add_all(items)
        self._db.add(
            OrderStatusHistory(order_id=order.id, status=OrderStatus.CREATED, changed_by_user_id=user_id)
        )
        self._db.flush()

        ticket_service = TicketService(self._db, self._notifier)
        tickets = ticket_service.route_order_to_kitchen(order, items)

        # Running totals, before tip
        self._db.refresh(session, attribute_names=["orders"])
        session.subtotal_cents, session.total_cents = session_totals(session.orders)

        safe_commit(self._db)
        self._db.refresh(order)

        logger.info(
            "Dine-in order created",
            order_id=order.id,
            session_id=session.id,
            table_id=table.id,
            items=len(items),
            tickets=len(tickets),
            total_cents=order.total_cents,
            user_id=user_id,
        )

        if self._notifier is not None:
            self._notifier.order_created(order)
            self._notifier.table_order_created(order, session, table)
        ticket_service.notify_created(tickets)

        return order_to_output(order)

    # =========================================================================
    # Order status
    # =========================================================================

    def _get_order(self, order_id: int, branch_ids: list[int] | None) -> Order:
        order = self._db.scalar(
            select(Order)
            .options(
                selectinload(Order.items),
                selectinload(Order.history),
                selectinload(Order.tickets),
            )
            .where(Order.id == order_id)
        )
        if order is None:
            raise OrderNotFoundError(order_id)
        if branch_ids is not None and order.branch_id not in branch_ids:
            raise BranchAccessError(order.branch_id, order_id=order_id)
        return order

    def get_order(self, order_id: int, branch_ids: list[int] | None = None) -> OrderDetailOutput:
        return order_to_output(self._get_order(order_id, branch_ids), with_history=True)

    def update_status(
        self,
        order_id: int,
        status_value: str,
        *,
        user_id: int | None,
        branch_ids: list[int] | None = None,
    ) -> OrderDetailOutput:
        """
        Set an order's status and append it to the history.

        DELIVERED and CANCELLED are final. Cancelling a dine-in order takes it
        out of its session's running totals.
        """
        new_status = parse_order_status(status_value)
        if new_status is None:
            raise ValidationError(
                f"Estado de pedido inválido: '{status_value}'",
                field="status",
                valid=OrderStatus.ALL,
            )

        order = self._get_order(order_id, branch_ids)
        previous = order.status
        if new_status not in ORDER_TRANSITIONS.get(previous, []):
            raise InvalidTransitionError("Pedido", previous, new_status, order_id=order_id)

        order.status = new_status
        order.updated_at = utcnow()
        self._db.add(
            OrderStatusHistory(order_id=order.id, status=new_status, changed_by_user_id=user_id)
        )

        session = order.table_session
        if session is not None and session.status == SessionStatus.ACTIVE:
            self._db.flush()
            session.subtotal_cents, session.total_cents = session_totals(session.orders)

        safe_commit(self._db)
        self._db.refresh(order)

        logger.info(
            "Order status updated",
            order_id=order.id,
            from_status=previous,
            to_status=new_status,
            user_id=user_id,
        )
        if self._notifier is not None:
            self._notifier.order_status_changed(order, previous)
        return order_to_output(order, with_history=True)
