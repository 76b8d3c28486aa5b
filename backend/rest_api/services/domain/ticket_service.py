"""
Kitchen Ticket Domain Service.

Routes new orders to kitchen stations and moves tickets through
PENDING -> IN_PROGRESS -> READY -> DELIVERED.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, timezone
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.orm import Session, joinedload

from rest_api.models import (
    Category,
    KitchenTicket,
    KitchenTicketCounter,
    Order,
    OrderItem,
    Product,
    TableSession,
    utcnow,
)
from shared.config.constants import (
    Station,
    TicketStatus,
    TICKET_TRANSITIONS,
    parse_ticket_status,
    station_prefix,
)
from shared.config.logging import kitchen_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    BranchAccessError,
    InvalidTransitionError,
    TicketNotFoundError,
    ValidationError,
)
from shared.utils.kitchen_schemas import KitchenTicketItemSnapshot, KitchenTicketOutput

if TYPE_CHECKING:
    from rest_api.services.events import Notifier


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def ticket_to_output(ticket: KitchenTicket) -> KitchenTicketOutput:
    """Full ticket DTO, with the table and customer of its order."""
    order = ticket.order
    table_name = None
    customer_name = None
    if order is not None:
        customer_name = order.customer_name
        if order.table_session is not None:
            table_name = order.table_session.table_name

    return KitchenTicketOutput(
        id=ticket.id,
        order_id=ticket.order_id,
        branch_id=ticket.branch_id,
        station=ticket.station,
        status=ticket.status,
        ticket_number=ticket.ticket_number,
        notes=ticket.notes,
        assigned_user_id=ticket.assigned_user_id,
        table_name=table_name,
        customer_name=customer_name,
        items=[KitchenTicketItemSnapshot.model_validate(item) for item in ticket.items_json or []],
        created_at=ticket.created_at,
        started_at=ticket.started_at,
        ready_at=ticket.ready_at,
        delivered_at=ticket.delivered_at,
    )


class TicketService:
    """
    Domain service for kitchen tickets.

    Routing runs inside the caller's transaction and never commits; status
    updates commit and notify the station.
    """

    def __init__(self, db: Session, notifier: "Notifier | None" = None):
        self._db = db
        self._notifier = notifier

    # =========================================================================
    # Routing
    # =========================================================================

    def resolve_stations(self, items: Iterable[OrderItem]) -> dict[int | None, str]:
        """
        Station per product id, from the product's category default_station.
        Anything unresolvable goes to KITCHEN.
        """
        product_ids = {item.product_id for item in items if item.product_id is not None}
        stations: dict[int | None, str] = {}
        if product_ids:
            rows = self._db.execute(
                select(Product.id, Category.default_station)
                .outerjoin(Category, Product.category_id == Category.id)
                .where(Product.id.in_(product_ids))
            ).all()
            for product_id, default_station in rows:
                station = (default_station or "").upper()
                stations[product_id] = station if station in Station.ALL else Station.DEFAULT
        return stations

    def route_order_to_kitchen(self, order: Order, items: list[OrderItem]) -> list[KitchenTicket]:
        """
        Create one PENDING ticket per station present in ``items``.

        Groups keep the order in which stations first appear. The tickets are
        flushed but not committed; the caller commits them with the order.
        """
        if not items:
            return []

        stations = self.resolve_stations(items)
        groups: dict[str, list[OrderItem]] = {}
        for item in items:
            station = stations.get(item.product_id, Station.DEFAULT)
            groups.setdefault(station, []).append(item)

        tickets = []
        for station, station_items in groups.items():
            ticket = KitchenTicket(
                order_id=order.id,
                branch_id=order.branch_id,
                station=station,
                status=TicketStatus.PENDING,
                ticket_number=self.next_ticket_number(station),
                items_json=[
                    {
                        "productId": item.product_id,
                        "name": item.name_snapshot,
                        "qty": item.qty,
                        "modifiers": item.modifiers,
                    }
                    for item in station_items
                ],
                notes=order.note,
            )
            self._db.add(ticket)
            tickets.append(ticket)

        self._db.flush()
        logger.info(
            "Order routed to kitchen",
            order_id=order.id,
            tickets=[t.ticket_number for t in tickets],
        )
        return tickets

    def notify_created(self, tickets: list[KitchenTicket]) -> None:
        """Send NewKitchenTicket and the device push for committed tickets."""
        if self._notifier is None:
            return
        for ticket in tickets:
            self._notifier.ticket_created(ticket_to_output(ticket))

    # =========================================================================
    # Numbering
    # =========================================================================

    def next_ticket_number(self, station: str, business_date: date | None = None) -> str:
        """
        Next "{prefix}{seq:03d}" for the station's business day (UTC).

        The sequence lives in kitchen_ticket_counter; if that table cannot be
        used, the day's ticket count is used instead.
        """
        business_date = business_date or utcnow().date()
        try:
            with self._db.begin_nested():
                seq = self._increment_counter(station, business_date)
        except (OperationalError, ProgrammingError) as e:
            logger.warning(
                "Ticket counter unavailable, numbering by count",
                station=station,
                error=str(e),
            )
            seq = self._count_tickets(station, business_date) + 1
        return f"{station_prefix(station)}{seq:03d}"

    def _increment_counter(self, station: str, business_date: date) -> int:
        bump = (
            update(KitchenTicketCounter)
            .where(
                KitchenTicketCounter.station == station,
                KitchenTicketCounter.business_date == business_date,
            )
            .values(last_value=KitchenTicketCounter.last_value + 1)
            .returning(KitchenTicketCounter.last_value)
            .execution_options(synchronize_session=False)
        )
        value = self._db.execute(bump).scalar_one_or_none()
        if value is not None:
            return value

        # First ticket of the day for this station
        try:
            with self._db.begin_nested():
                self._db.add(
                    KitchenTicketCounter(station=station, business_date=business_date, last_value=1)
                )
            return 1
        except IntegrityError:
            # Another transaction created the row first
            return self._db.execute(bump).scalar_one()

    def _count_tickets(self, station: str, business_date: date) -> int:
        start, end = _day_bounds(business_date)
        return self._db.scalar(
            select(func.count(KitchenTicket.id)).where(
                KitchenTicket.station == station,
                KitchenTicket.created_at >= start,
                KitchenTicket.created_at < end,
            )
        ) or 0

    # =========================================================================
    # Queries
    # =========================================================================

    def _ticket_query(self):
        return select(KitchenTicket).options(
            joinedload(KitchenTicket.order)
            .joinedload(Order.table_session)
            .joinedload(TableSession.table)
        )

    def list_tickets(
        self,
        branch_ids: list[int] | None,
        station: str | None = None,
        status: str | None = None,
    ) -> list[KitchenTicketOutput]:
        """
        Tickets ordered by creation time.

        Without a status filter DELIVERED tickets are left out.
        ``branch_ids=None`` lists every branch.
        """
        query = self._ticket_query()

        if station:
            station_value = station.strip().upper()
            if station_value not in Station.ALL:
                raise ValidationError(f"Estación inválida: '{station}'", field="station")
            query = query.where(KitchenTicket.station == station_value)

        if status:
            status_value = parse_ticket_status(status)
            if status_value is None:
                raise ValidationError(f"Estado de comanda inválido: '{status}'", field="status")
            query = query.where(KitchenTicket.status == status_value)
        else:
            query = query.where(KitchenTicket.status.in_(TicketStatus.ACTIVE))

        if branch_ids is not None:
            if not branch_ids:
                return []
            query = query.where(KitchenTicket.branch_id.in_(branch_ids))

        query = query.order_by(KitchenTicket.created_at.asc(), KitchenTicket.id.asc())
        tickets = self._db.execute(query).scalars().unique().all()
        return [ticket_to_output(t) for t in tickets]

    def _get_ticket(self, ticket_id: int, branch_ids: list[int] | None) -> KitchenTicket:
        ticket = self._db.scalar(self._ticket_query().where(KitchenTicket.id == ticket_id))
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        if branch_ids is not None and ticket.branch_id not in branch_ids:
            raise BranchAccessError(ticket.branch_id, ticket_id=ticket_id)
        return ticket

    def get_ticket(self, ticket_id: int, branch_ids: list[int] | None = None) -> KitchenTicketOutput:
        return ticket_to_output(self._get_ticket(ticket_id, branch_ids))

    # =========================================================================
    # Status
    # =========================================================================

    def update_status(
        self,
        ticket_id: int,
        status_value: str,
        *,
        notes: str | None = None,
        user_id: int | None = None,
        branch_ids: list[int] | None = None,
    ) -> KitchenTicketOutput:
        """
        Advance a ticket one step.

        The status string is case-insensitive. Each of started_at, ready_at and
        delivered_at is stamped only the first time.
        """
        new_status = parse_ticket_status(status_value)
        if new_status is None:
            raise ValidationError(
                f"Estado de comanda inválido: '{status_value}'",
                field="status",
                valid=TicketStatus.ALL,
            )

        ticket = self._get_ticket(ticket_id, branch_ids)
        previous = ticket.status
        if new_status not in TICKET_TRANSITIONS.get(previous, []):
            raise InvalidTransitionError("Comanda", previous, new_status, ticket_id=ticket_id)

        now = utcnow()
        ticket.status = new_status
        if new_status == TicketStatus.IN_PROGRESS and ticket.started_at is None:
            ticket.started_at = now
        elif new_status == TicketStatus.READY and ticket.ready_at is None:
            ticket.ready_at = now
        elif new_status == TicketStatus.DELIVERED and ticket.delivered_at is None:
            ticket.delivered_at = now

        if notes is not None:
            ticket.notes = notes
        if ticket.assigned_user_id is None and user_id is not None:
            ticket.assigned_user_id = user_id

        safe_commit(self._db)
        self._db.refresh(ticket)

        logger.info(
            "Ticket status updated",
            ticket_id=ticket.id,
            ticket_number=ticket.ticket_number,
            station=ticket.station,
            from_status=previous,
            to_status=new_status,
            user_id=user_id,
        )

        output = ticket_to_output(ticket)
        if self._notifier is not None:
            self._notifier.ticket_updated(output)
        return output
