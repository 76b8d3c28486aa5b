"""
Dine-in CLI.

Command-line interface for common operations: schema setup, seeding,
inspecting kitchen queues and checking service health.
"""

import asyncio
import sys
import time

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="dinein",
    help="Dine-in Restaurant Operations CLI",
    add_completion=False,
)
console = Console()


# =============================================================================
# Database Commands
# =============================================================================

@app.command()
def db_init():
    """Create missing tables."""
    from rest_api.models import Base
    from shared.infrastructure.db import engine

    Base.metadata.create_all(bind=engine)
    console.print("[green]✓ Tables created/verified[/green]")


@app.command()
def db_seed(
    env: str = typer.Option("development", help="Environment to seed"),
    force: bool = typer.Option(False, "--force", "-f", help="Allow seeding production"),
):
    """Seed database with a demo branch, staff, catalog and tables."""
    if env == "production" and not force:
        console.print("[red]Cannot seed production without --force[/red]")
        raise typer.Exit(1)

    from rest_api.seed import seed
    from shared.infrastructure.db import SessionLocal

    console.print(f"[blue]Seeding database for: {env}[/blue]")
    with SessionLocal() as db:
        seed(db)
    console.print("[green]✓ Seed complete[/green]")


# =============================================================================
# Kitchen Commands
# =============================================================================

@app.command()
def tickets(
    station: str = typer.Option(None, "--station", "-s", help="KITCHEN, BAR, GRILL or DESSERTS"),
    status: str = typer.Option(None, "--status", help="Ticket status (default: all but DELIVERED)"),
):
    """List open kitchen tickets across all branches."""
    from rest_api.services.domain import TicketService
    from shared.infrastructure.db import SessionLocal
    from shared.utils.exceptions import ValidationError

    with SessionLocal() as db:
        try:
            rows = TicketService(db).list_tickets(None, station=station, status=status)
        except ValidationError as e:
            console.print(f"[red]✗ {e.detail}[/red]")
            raise typer.Exit(1)

    table = Table(title="Kitchen tickets")
    table.add_column("Ticket", style="cyan")
    table.add_column("Station")
    table.add_column("Status", style="yellow")
    table.add_column("Table")
    table.add_column("Items")
    table.add_column("Created", style="dim")

    for ticket in rows:
        items = ", ".join(f"{item.qty}x {item.name}" for item in ticket.items)
        table.add_row(
            ticket.ticket_number,
            ticket.station,
            ticket.status,
            ticket.table_name or "-",
            items,
            ticket.created_at.strftime("%H:%M"),
        )

    console.print(table)
    console.print(f"{len(rows)} ticket(s)")


# =============================================================================
# Realtime Commands
# =============================================================================

@app.command()
def notify_test(
    topic: str = typer.Argument("admins", help='Topic, e.g. "admins" or "Kitchen_BAR"'),
):
    """Publish a test event to check the gateway fan-out."""
    from redis.exceptions import RedisError

    from shared.infrastructure.events import Event, close_redis_pool, get_redis_pool, publish_event

    try:
        event = Event(type="Test", topic=topic, payload={"message": "ping from CLI"})
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)

    async def _publish():
        try:
            redis_client = await get_redis_pool()
            return await publish_event(redis_client, event)
        finally:
            await close_redis_pool()

    try:
        receivers = asyncio.run(_publish())
    except (RedisError, OSError) as e:
        console.print(f"[red]✗ Publish failed: {type(e).__name__}: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Published to {topic} ({receivers} subscriber(s))[/green]")


# =============================================================================
# Health Commands
# =============================================================================

@app.command()
def health(
    api_url: str = typer.Option("http://localhost:8000", help="REST API base URL"),
    ws_url: str = typer.Option("http://localhost:8001", help="WS gateway base URL"),
):
    """Check system health."""
    import httpx

    async def _health():
        services = [
            ("REST API", f"{api_url}/api/health"),
            ("WS Gateway", f"{ws_url}/ws/health"),
        ]

        table = Table(title="Service Health")
        table.add_column("Service", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Response Time", style="yellow")

        async with httpx.AsyncClient(timeout=5.0) as client:
            for name, url in services:
                start = time.time()
                try:
                    response = await client.get(url)
                except httpx.HTTPError as e:
                    table.add_row(name, f"✗ {type(e).__name__}", "-")
                    continue
                elapsed = (time.time() - start) * 1000
                if response.status_code == 200:
                    table.add_row(name, "✓ Healthy", f"{elapsed:.0f}ms")
                else:
                    table.add_row(name, f"✗ Status {response.status_code}", f"{elapsed:.0f}ms")

        console.print(table)

    asyncio.run(_health())


@app.command()
def version():
    """Show version information."""
    table = Table(title="Dine-in Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("API", "0.1.0")
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()
