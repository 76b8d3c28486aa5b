"""
Pytest configuration and fixtures for backend tests.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rest_api.main import app
from rest_api.models import (
    Base,
    Branch,
    Category,
    Product,
    Table,
    User,
    UserBranchRole,
)
from rest_api.services.events import Notifier, get_notifier
from shared.config.constants import Roles, Station
from shared.infrastructure.db import get_db
from shared.infrastructure.events import Event
from shared.security.auth import sign_jwt
from shared.security.password import hash_password
from shared.security.rate_limit import limiter


def sqlite_engine(url: str, begin_statement: str = "BEGIN", **kwargs):
    """
    SQLite engine whose transactions are started by SQLAlchemy, so that
    SAVEPOINT (Session.begin_nested) works.
    """
    engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30}, **kwargs)

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql(begin_statement)

    return engine


# SQLite in-memory database for testing
engine = sqlite_engine("sqlite://", poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingNotifier(Notifier):
    """Notifier that keeps events in memory instead of publishing them."""

    def __init__(self):
        super().__init__(None)
        self.events: list[Event] = []

    def queue(self, topic: str, event_type: str, payload: dict) -> None:
        self.events.append(Event(type=event_type, topic=topic, payload=payload))

    def of_type(self, event_type: str) -> list[Event]:
        return [e for e in self.events if e.type == event_type]

    def topics_for(self, event_type: str) -> list[str]:
        return [e.topic for e in self.of_type(event_type)]


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def client(db_session, notifier):
    """
    Test client with the database session and notifier overridden.
    The app lifespan (create_all on the real engine, seeding) is not run.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    limiter.reset()

    yield TestClient(app)

    app.dependency_overrides.clear()


# =============================================================================
# Tokens
# =============================================================================


def make_token(user_id: int, roles: list[str], branch_ids: list[int]) -> str:
    return sign_jwt({
        "sub": str(user_id),
        "roles": roles,
        "branch_ids": branch_ids,
        "email": f"user{user_id}@test.com",
    })


def bearer(user_id: int, roles: list[str], branch_ids: list[int]) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, roles, branch_ids)}"}


@pytest.fixture
def make_headers():
    """Build staff Authorization headers: make_headers(user_id, roles, branch_ids)."""
    return bearer


@pytest.fixture
def staff_token():
    """Sign staff JWTs: staff_token(user_id, roles, branch_ids)."""
    return make_token


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def seed_branch(db_session):
    """Create a test branch."""
    branch = Branch(name="Test Branch", address="123 Test St", phone="+1234567890")
    db_session.add(branch)
    db_session.commit()
    db_session.refresh(branch)
    return branch


@pytest.fixture
def other_branch(db_session):
    branch = Branch(name="Other Branch")
    db_session.add(branch)
    db_session.commit()
    db_session.refresh(branch)
    return branch


@pytest.fixture
def waiter_headers(seed_branch):
    return bearer(2, [Roles.WAITER], [seed_branch.id])


@pytest.fixture
def manager_headers(seed_branch):
    return bearer(3, [Roles.MANAGER], [seed_branch.id])


@pytest.fixture
def kitchen_headers(seed_branch):
    return bearer(4, [Roles.KITCHEN], [seed_branch.id])


@pytest.fixture
def seed_admin_user(db_session, seed_branch):
    """Create an admin user that can log in."""
    user = User(
        email="admin@test.com",
        password=hash_password("testpass123"),
        first_name="Test",
        last_name="Admin",
    )
    db_session.add(user)
    db_session.flush()
    db_session.add(UserBranchRole(user_id=user.id, branch_id=seed_branch.id, role=Roles.ADMIN))
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(client, seed_admin_user):
    """Get authentication headers for API calls."""
    response = client.post(
        "/api/auth/login",
        json={"email": "admin@test.com", "password": "testpass123"},
    )
    assert response.status_code == 200, f"Login failed: {response.json()}"
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def seed_table(db_session, seed_branch):
    """Create an AVAILABLE table."""
    table = Table(branch_id=seed_branch.id, name="4", capacity=4)
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table


@pytest.fixture
def second_table(db_session, seed_branch):
    table = Table(branch_id=seed_branch.id, name="7", capacity=2, sort_order=1)
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table


@pytest.fixture
def seed_catalog(db_session, seed_branch):
    """
    Products routed to different stations:

    - burger, fries: KITCHEN category
    - beer: BAR category
    - steak: GRILL category (with a double portion price)
    - mystery: no category (falls back to KITCHEN)
    - retired: inactive
    """
    kitchen = Category(branch_id=seed_branch.id, name="Principales", default_station=Station.KITCHEN)
    bar = Category(branch_id=seed_branch.id, name="Bebidas", default_station=Station.BAR)
    grill = Category(branch_id=seed_branch.id, name="Parrilla", default_station=Station.GRILL)
    db_session.add_all([kitchen, bar, grill])
    db_session.flush()

    products = {
        "burger": Product(category_id=kitchen.id, name="Burger", price_cents=1500),
        "fries": Product(category_id=kitchen.id, name="Fries", price_cents=600),
        "beer": Product(category_id=bar.id, name="Beer", price_cents=800),
        "steak": Product(category_id=grill.id, name="Steak", price_cents=5000, double_price_cents=9000),
        "mystery": Product(category_id=None, name="Mystery", price_cents=100),
        "retired": Product(category_id=kitchen.id, name="Retired", price_cents=100, is_active=False),
    }
    db_session.add_all(products.values())
    db_session.commit()
    for product in products.values():
        db_session.refresh(product)
    return products


@pytest.fixture
def open_session(client, seed_table, waiter_headers):
    """Open a session on seed_table through the API and return its JSON."""
    response = client.post(
        f"/api/tables/{seed_table.id}/open-session",
        json={"guestCount": 2, "customerName": "Pérez"},
        headers=waiter_headers,
    )
    assert response.status_code == 201, response.json()
    return response.json()


@pytest.fixture
def file_sessionmaker(tmp_path):
    """Sessions on a file database, for tests that need real concurrent transactions."""
    # BEGIN IMMEDIATE takes the write lock up front, like SELECT ... FOR UPDATE
    file_engine = sqlite_engine(f"sqlite:///{tmp_path / 'tickets.db'}", begin_statement="BEGIN IMMEDIATE")
    Base.metadata.create_all(bind=file_engine)
    yield sessionmaker(bind=file_engine, autoflush=False)
    file_engine.dispose()


@pytest.fixture
def fresh_sessionmaker():
    """
    Factory of empty in-memory databases, one per call.

    Property tests call it once per generated example, since function-scoped
    fixtures are not reset between hypothesis examples.
    """
    engines = []

    def make():
        fresh_engine = sqlite_engine("sqlite://", poolclass=StaticPool)
        Base.metadata.create_all(bind=fresh_engine)
        engines.append(fresh_engine)
        return sessionmaker(bind=fresh_engine, autoflush=False)

    yield make
    for fresh_engine in engines:
        fresh_engine.dispose()
