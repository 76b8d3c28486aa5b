"""
Property-based tests with Hypothesis.

Each example gets its own empty database from ``fresh_sessionmaker``.
"""

from collections import Counter
from datetime import date, timedelta

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from rest_api.models import Branch, Category, Order, OrderItem, Product, Table, TableSession
from rest_api.services.domain import SessionService, TicketService
from shared.config.constants import OrderStatus, Station, TableStatus, station_prefix
from shared.utils.exceptions import InvalidStateError
from shared.utils.schemas import CloseSessionRequest

property_settings = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)

# None: product without category; "PASTRY": category with an unknown station
station_values = st.sampled_from(Station.ALL + [None, "PASTRY"])


def _open_session(db) -> TableSession:
    branch = Branch(name="Centro")
    db.add(branch)
    db.flush()
    table = Table(branch_id=branch.id, name="1", capacity=4, status=TableStatus.OCCUPIED)
    db.add(table)
    db.flush()
    session = TableSession(table_id=table.id, branch_id=branch.id, customer_name="Díaz")
    db.add(session)
    db.flush()
    return session


class TestTicketRoutingProperties:
    @given(lines=st.lists(st.tuples(station_values, st.integers(min_value=1, max_value=5)), min_size=1, max_size=12))
    @property_settings
    def test_one_ticket_per_station_and_no_item_lost(self, fresh_sessionmaker, lines):
        """Property: N items over K stations give K tickets whose snapshots add up to the items."""
        with fresh_sessionmaker()() as db:
            session = _open_session(db)
            categories = {}
            products = []
            for index, (station, _) in enumerate(lines):
                category_id = None
                if station is not None:
                    if station not in categories:
                        category = Category(branch_id=session.branch_id, name=f"Cat {station}", default_station=station)
                        db.add(category)
                        db.flush()
                        categories[station] = category
                    category_id = categories[station].id
                products.append(Product(category_id=category_id, name=f"Item {index}", price_cents=100))
            db.add_all(products)

            order = Order(
                branch_id=session.branch_id,
                table_session_id=session.id,
                customer_name="Díaz",
                phone="0000000000",
            )
            db.add(order)
            db.flush()
            items = [
                OrderItem(
                    order_id=order.id,
                    product_id=product.id,
                    name_snapshot=product.name,
                    qty=qty,
                    unit_price_cents=100,
                    line_total_cents=100 * qty,
                )
                for product, (_, qty) in zip(products, lines)
            ]
            db.add_all(items)
            db.flush()

            tickets = TicketService(db).route_order_to_kitchen(order, items)

            expected = [s if s in Station.ALL else Station.DEFAULT for s, _ in lines]
            assert [t.station for t in tickets] == list(dict.fromkeys(expected))

            routed = Counter(
                (entry["productId"], entry["qty"]) for ticket in tickets for entry in ticket.items_json
            )
            assert routed == Counter((item.product_id, item.qty) for item in items)

            station_of = {product.id: station for product, station in zip(products, expected)}
            for ticket in tickets:
                assert {station_of[entry["productId"]] for entry in ticket.items_json} == {ticket.station}


class TestTicketNumberingProperties:
    @given(
        calls=st.lists(
            st.tuples(st.sampled_from(Station.ALL), st.integers(min_value=0, max_value=2)),
            min_size=1,
            max_size=25,
        )
    )
    @property_settings
    def test_numbers_count_up_per_station_and_day(self, fresh_sessionmaker, calls):
        """Property: each (station, day) sequence is 1, 2, 3, ... in call order."""
        first_day = date(2026, 3, 1)
        with fresh_sessionmaker()() as db:
            service = TicketService(db)
            seen = Counter()
            for station, offset in calls:
                number = service.next_ticket_number(station, first_day + timedelta(days=offset))
                seen[(station, offset)] += 1
                assert number == f"{station_prefix(station)}{seen[(station, offset)]:03d}"
            db.commit()


class TestSessionTotalsProperties:
    @given(
        orders=st.lists(
            st.tuples(
                st.integers(min_value=0, max_value=50_000),
                st.integers(min_value=0, max_value=5_000),
                st.booleans(),
            ),
            max_size=8,
        ),
        tip=st.integers(min_value=0, max_value=20_000),
    )
    @property_settings
    def test_close_totals_skip_cancelled_orders_and_add_tip(self, fresh_sessionmaker, orders, tip):
        """Property: total = sum of non-cancelled order totals + tip; a second close changes nothing."""
        with fresh_sessionmaker()() as db:
            session = _open_session(db)
            for subtotal, discount, cancelled in orders:
                discount = min(discount, subtotal)
                db.add(Order(
                    branch_id=session.branch_id,
                    table_session_id=session.id,
                    customer_name="Díaz",
                    phone="0000000000",
                    subtotal_cents=subtotal,
                    discount_cents=discount,
                    total_cents=subtotal - discount,
                    status=OrderStatus.CANCELLED if cancelled else OrderStatus.CREATED,
                ))
            db.commit()
            session_id = session.id

            service = SessionService(db)
            closed = service.close_session(
                session_id,
                CloseSessionRequest(payment_method="CASH", tip_cents=tip),
                user_id=1,
            )

            kept = [(s, min(d, s)) for s, d, cancelled in orders if not cancelled]
            assert closed.subtotal_cents == sum(s for s, _ in kept)
            assert closed.total_cents == sum(s - d for s, d in kept) + tip
            assert closed.tip_cents == tip

            with pytest.raises(InvalidStateError):
                service.close_session(
                    session_id,
                    CloseSessionRequest(payment_method="CARD", tip_cents=tip + 1),
                    user_id=1,
                )
            db.rollback()
            again = service.get_session(session_id)
            assert (again.total_cents, again.tip_cents, again.payment_method) == (
                closed.total_cents,
                tip,
                "CASH",
            )
