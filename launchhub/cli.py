"""Command-line interface for LaunchHub.

This module provides a Typer-based CLI for operating the LaunchHub backend.

Commands:
- init: Create the database schema
- seed: Insert the default category tree
- sweep: Run the launch sweep once (what /api/cron does)
- leaderboard: Show the ranked launches for a window
- status: Show configuration and platform statistics
- serve: Run the HTTP server

Example:
    $ launchhub init
    $ launchhub seed
    $ launchhub sweep
    $ launchhub leaderboard --window yesterday
    $ launchhub serve --port 3000
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy import func
from sqlmodel import select

from launchhub.config import settings
from launchhub.database import DatabaseManager
from launchhub.launch import LaunchWindow, leaderboard, next_launch, sweep_launches
from launchhub.logging import logger
from launchhub.logging import setup_logging as configure_logging
from launchhub.models import Category, Comment, Product, User, Vote
from launchhub.utils import format_iso, utc_now

# Initialize CLI app
app = typer.Typer(
    name="launchhub",
    help="Product launch platform backend",
    add_completion=False,
)
console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def setup_logging(verbose: bool = False) -> None:
    """Switch to DEBUG output when --verbose is given."""
    if verbose:
        configure_logging(level="DEBUG", json_logs=settings.log_json, colorize=not settings.log_json)


def _count(session, stmt) -> int:
    return session.exec(stmt).one()


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Drop and recreate all tables",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Initialize the database schema.

    Examples:
        # Create tables
        $ launchhub init

        # Wipe and recreate
        $ launchhub init --force
    """
    setup_logging(verbose)

    console.print("🏗️  [bold cyan]LaunchHub Initialization[/bold cyan]\n")

    try:
        db_path = Path(str(settings.database_path))
        if not settings.database_override and db_path.exists() and not force:
            console.print(
                f"⚠️  Database already exists at {settings.database_path}\n"
                "Use --force to recreate it."
            )
            return

        db = DatabaseManager()
        db.initialize()
        if force:
            db.reset_schema()

        console.print(f"✅ Database ready at [yellow]{db.database_url}[/yellow]")
        db.close()

        console.print("\nNext steps:")
        console.print("  1. Run: launchhub seed")
        console.print("  2. Run: launchhub serve")

    except Exception as e:
        console.print(f"\n❌ [bold red]Initialization failed: {e}[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def seed(
    reset: bool = typer.Option(
        False,
        "--reset",
        help="Delete existing categories (and their product links) first",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Seed the default category tree (5 categories with 3 subcategories each)."""
    setup_logging(verbose)

    console.print("🌱 [bold cyan]Seeding categories[/bold cyan]\n")

    try:
        db = DatabaseManager()
        db.initialize()
        with db.session() as session:
            created = db.seed_categories(session, reset=reset)
        db.close()
    except Exception as e:
        console.print(f"\n❌ [bold red]Seed failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    console.print(f"✅ [bold green]Created {created} categories[/bold green]")


@app.command()
def sweep(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Mark every due launch as started.

    Safe to run repeatedly; a second run right after the first updates nothing.
    """
    setup_logging(verbose)

    now = utc_now()
    try:
        db = DatabaseManager()
        db.initialize()
        with db.session() as session:
            updated = sweep_launches(session, now)
        db.close()
    except Exception as e:
        logger.error(f"[CRON] Failed to update launch status: {e}")
        console.print(f"\n❌ [bold red]Sweep failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    console.print(f"✅ [bold green]Updated {updated} products[/bold green] at {format_iso(now)}")


@app.command(name="leaderboard")
def show_leaderboard(
    window: LaunchWindow = typer.Option(
        LaunchWindow.TODAY,
        "--window",
        "-w",
        help="Launch window to rank",
        case_sensitive=False,
    ),
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Maximum rows"),
) -> None:
    """Show ranked launches for today, yesterday or all past days."""
    try:
        db = DatabaseManager()
        db.initialize()
        with db.session() as session:
            cards = leaderboard(session, window, limit=limit)
        db.close()
    except Exception as e:
        console.print(f"\n❌ [bold red]Leaderboard failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    if not cards:
        console.print(f"📭 No launches in window [yellow]{window}[/yellow]")
        return

    table = Table(title=f"Leaderboard ({window})")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Product", style="bold")
    table.add_column("Votes", justify="right", style="green")
    table.add_column("Launched", style="yellow")

    for rank, card in enumerate(cards, start=1):
        table.add_row(str(rank), card.name, str(card.vote_count), format_iso(card.launch_date))

    console.print(table)


@app.command()
def status() -> None:
    """Show configuration and platform statistics."""
    console.print("📊 [bold cyan]LaunchHub Status[/bold cyan]\n")

    try:
        db = DatabaseManager()
        db.initialize()

        config_table = Table(title="Configuration", show_header=False)
        config_table.add_column("Key", style="cyan")
        config_table.add_column("Value", style="yellow")
        config_table.add_row("Environment", settings.environment.value)
        config_table.add_row("Database", db.database_url)
        config_table.add_row("Launch Timezone", settings.launch_timezone)
        config_table.add_row("Cron Auth", "required" if settings.cron_requires_auth else "open")
        console.print(config_table)
        console.print()

        now = utc_now()
        with db.session() as session:
            published = Product.is_launched == True  # noqa: E712
            stats = [
                ("Users", _count(session, select(func.count(User.id)))),
                ("Products", _count(session, select(func.count(Product.id)))),
                ("Published", _count(session, select(func.count(Product.id)).where(published))),
                (
                    "Live",
                    _count(
                        session,
                        select(func.count(Product.id)).where(published, Product.launch_date <= now),
                    ),
                ),
                ("Votes", _count(session, select(func.count(Vote.id)))),
                ("Comments", _count(session, select(func.count(Comment.id)))),
                ("Categories", _count(session, select(func.count(Category.id)))),
            ]
            upcoming = next_launch(session, now)
        db.close()

        stats_table = Table(title="Platform Statistics")
        stats_table.add_column("Entity", style="cyan")
        stats_table.add_column("Count", justify="right", style="green")
        for label, value in stats:
            stats_table.add_row(label, f"{value:,}")
        console.print(stats_table)
        console.print()

        if upcoming:
            console.print(
                f"🚀 Next launch: [yellow]{upcoming.name}[/yellow] at {format_iso(upcoming.launch_date)}"
            )
        else:
            console.print("🚀 No upcoming launches")

    except Exception as e:
        console.print(f"\n❌ [bold red]Status failed: {e}[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (defaults to settings)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port (defaults to settings)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the HTTP server with uvicorn."""
    import uvicorn

    host = host or settings.host
    port = port or settings.port
    console.print(f"🌐 [bold cyan]LaunchHub[/bold cyan] listening on http://{host}:{port}")
    uvicorn.run(
        "launchhub.server:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    app()
