"""
Seed data for development and testing.
Creates minimal initial data: branch, staff users, categories routed to each
kitchen station, products and tables.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_api.models import (
    Branch,
    Category,
    Product,
    Table,
    User,
    UserBranchRole,
)
from shared.config.constants import Roles, Station
from shared.config.logging import get_logger
from shared.security.password import hash_password

logger = get_logger(__name__)

DEFAULT_TABLE_COUNT = 12
DEFAULT_TABLE_CAPACITY = 4

# name, default_station, products (name, price_cents, double_price_cents)
CATALOG = [
    ("Entradas", Station.KITCHEN, [
        ("Empanada de carne", 1200, None),
        ("Provoleta", 3500, None),
    ]),
    ("Parrilla", Station.GRILL, [
        ("Bife de chorizo", 12500, 21000),
        ("Vacío", 10800, 18500),
    ]),
    ("Postres", Station.DESSERTS, [
        ("Flan con dulce de leche", 3200, None),
        ("Panqueque", 3000, None),
    ]),
    ("Bebidas", Station.BAR, [
        ("Agua sin gas", 1500, None),
        ("Copa de Malbec", 2800, None),
    ]),
]

STAFF = [
    ("waiter@demo.com", "waiter123", "Juan", "Mozo", Roles.WAITER),
    ("kitchen@demo.com", "kitchen123", "María", "Cocinera", Roles.KITCHEN),
    ("manager@demo.com", "manager123", "Carlos", "Gerente", Roles.MANAGER),
    ("admin@demo.com", "admin123", "Admin", "Sistema", Roles.ADMIN),
]


def seed(db: Session) -> None:
    """
    Seed the database with initial data.
    Idempotent: only inserts if no branch exists yet.
    """
    if db.scalar(select(Branch.id).limit(1)):
        logger.info("Database already seeded, skipping")
        return

    logger.info("Seeding database")

    branch = Branch(
        name="Godoy Cruz",
        address="Av. San Martín 500, Godoy Cruz, Mendoza",
        phone="+54 261 4567890",
    )
    db.add(branch)
    db.flush()

    # ==========================================================================
    # Staff
    # ==========================================================================
    for email, password, first_name, last_name, role in STAFF:
        user = User(
            email=email,
            password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
        )
        db.add(user)
        db.flush()
        db.add(UserBranchRole(user_id=user.id, branch_id=branch.id, role=role))

    # ==========================================================================
    # Catalog
    # ==========================================================================
    product_count = 0
    for sort_order, (category_name, station, products) in enumerate(CATALOG, start=1):
        category = Category(
            branch_id=branch.id,
            name=category_name,
            default_station=station,
            sort_order=sort_order,
        )
        db.add(category)
        db.flush()
        for name, price_cents, double_price_cents in products:
            db.add(Product(
                category_id=category.id,
                name=name,
                price_cents=price_cents,
                double_price_cents=double_price_cents,
            ))
            product_count += 1

    # ==========================================================================
    # Tables
    # ==========================================================================
    for number in range(1, DEFAULT_TABLE_COUNT + 1):
        db.add(Table(
            branch_id=branch.id,
            name=str(number),
            capacity=DEFAULT_TABLE_CAPACITY,
            sort_order=number,
        ))

    db.commit()
    logger.info(
        "Database seeded successfully",
        branch_id=branch.id,
        users=len(STAFF),
        categories=len(CATALOG),
        products=product_count,
        tables=DEFAULT_TABLE_COUNT,
    )
