"""Command-line interface for PublishDB.

This module provides a Typer-based CLI over the read coordinator for
inspecting a PublishDB database.

Commands:
- init: Create the database and its tables
- status: Show row counts for every entity table
- schema: Show the attribute schema of one or all entity kinds
- content: List content, optionally scoped by status, one page at a time
- account: Show an account with its profile and content

Example:
    $ publishdb init
    $ publishdb content --scope active --page 2 --page-size 5
    $ publishdb account 1
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from publishdb.config import EntityKind, settings
from publishdb.database import DatabaseManager
from publishdb.errors import InvalidScopeError, NotFoundError, ValidationError
from publishdb.logging import setup_logging
from publishdb.models import describe_schema
from publishdb.reads import ReadCoordinator
from publishdb.telemetry import initialize_telemetry, shutdown_telemetry
from publishdb.utils import format_iso

# Initialize CLI app
app = typer.Typer(
    name="publishdb",
    help="Inspect and manage a PublishDB content database",
    add_completion=False,
)
console = Console()


@app.callback()
def main(ctx: typer.Context) -> None:
    """Inspect and manage a PublishDB content database."""
    if settings.enable_tracing:
        initialize_telemetry()
        ctx.call_on_close(shutdown_telemetry)


# =============================================================================
# Helper Functions
# =============================================================================


def configure_logging(verbose: bool = False) -> None:
    """Reconfigure logging for an interactive command.

    Args:
        verbose: If True, set DEBUG level; otherwise the configured level
    """
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_logs=settings.log_json,
        colorize=True,
    )


def open_database() -> DatabaseManager:
    """Create and initialize the process-wide database handle."""
    db = DatabaseManager()
    db.initialize()
    return db


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Drop and recreate every table",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Initialize the database and create all tables.

    Examples:
        # Initialize database
        $ publishdb init

        # Recreate an existing database (all rows are lost)
        $ publishdb init --force
    """
    configure_logging(verbose)
    console.print("🏗️  [bold cyan]PublishDB Initialization[/bold cyan]\n")

    db_path = Path(str(settings.database_path))
    if settings.database_url is None and db_path.exists() and not force:
        console.print(
            f"⚠️  Database already exists at {settings.database_path}\n"
            "Use --force to recreate it."
        )
        return

    try:
        db = DatabaseManager()
        db.initialize()
        if force:
            db.reset()
        db.close()
    except Exception as e:
        console.print(f"\n❌ [bold red]Initialization failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    console.print(f"✅ Database created at [yellow]{settings.resolved_database_url}[/yellow]")
    console.print("\n📋 Configuration:")
    console.print(f"  • Environment: {settings.environment.value}")
    console.print(f"  • Default Page Size: {settings.default_page_size}")
    console.print(f"  • Restrict Account Delete: {settings.restrict_account_delete}")
    console.print("\n✅ [bold green]Initialization complete![/bold green]")


@app.command()
def status(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Show row counts for every entity table.

    Examples:
        $ publishdb status
    """
    configure_logging(verbose)
    console.print("📊 [bold cyan]PublishDB Status[/bold cyan]\n")

    db = open_database()
    try:
        counts = ReadCoordinator(db).count_entities()
    finally:
        db.close()

    table = Table(title="Entity Counts")
    table.add_column("Entity", style="cyan")
    table.add_column("Rows", justify="right", style="green")
    for kind, count in counts.items():
        table.add_row(kind.value, f"{count:,}")
    console.print(table)


@app.command()
def schema(
    entity: Optional[EntityKind] = typer.Argument(
        None,
        help="Entity kind to describe (default: all)",
        case_sensitive=False,
    ),
) -> None:
    """Show the attribute schema of entity kinds.

    Examples:
        $ publishdb schema
        $ publishdb schema Content
    """
    kinds = [entity] if entity is not None else list(EntityKind)
    for kind in kinds:
        table = Table(title=kind.value)
        table.add_column("Attribute", style="cyan")
        table.add_column("Type", style="yellow")
        table.add_column("Nullable")
        table.add_column("Default")
        table.add_column("Keys")
        table.add_column("Rules", style="dim")
        for spec in describe_schema(kind).values():
            keys = []
            if spec.primary_key:
                keys.append("PK")
            if spec.foreign_key:
                keys.append(f"FK → {spec.foreign_key}")
            if spec.unique:
                keys.append("unique")
            table.add_row(
                spec.name,
                spec.type,
                "yes" if spec.nullable else "no",
                "" if spec.default is None else str(spec.default),
                ", ".join(keys),
                ", ".join(spec.rules),
            )
        console.print(table)


@app.command()
def content(
    scope: Optional[str] = typer.Option(
        None,
        "--scope",
        "-s",
        help="Status scope: active, draft or archived",
    ),
    page: int = typer.Option(1, "--page", "-p", help="1-based page number"),
    page_size: Optional[int] = typer.Option(
        None,
        "--page-size",
        "-n",
        help="Rows per page (defaults to DEFAULT_PAGE_SIZE)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """List content newest first.

    Examples:
        $ publishdb content
        $ publishdb content --scope active --page 2 --page-size 5
    """
    configure_logging(verbose)

    db = open_database()
    try:
        result = ReadCoordinator(db).list_content(scope=scope, page=page, page_size=page_size)
    except (InvalidScopeError, ValidationError) as e:
        console.print(f"❌ [bold red]{e}[/bold red]")
        raise typer.Exit(code=1)
    finally:
        db.close()

    table = Table(title=f"Content (page {result.current_page} of {result.total_pages})")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Status")
    table.add_column("Author")
    table.add_column("Tags", style="magenta")
    table.add_column("Created", style="dim")
    for item in result.items:
        table.add_row(
            str(item.id),
            item.title,
            item.status.value,
            item.account.full_name if item.account else "(deleted)",
            ", ".join(sorted(item.tag_names)),
            format_iso(item.created_at) or "",
        )
    console.print(table)
    console.print(f"\n{result.total} item(s) total")


@app.command()
def account(
    account_id: int = typer.Argument(..., help="Account ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Show an account with its profile and authored content.

    Examples:
        $ publishdb account 1
    """
    configure_logging(verbose)

    db = open_database()
    try:
        detail = ReadCoordinator(db).get_account_by_id(account_id)
    except NotFoundError as e:
        console.print(f"❌ [bold red]{e}[/bold red]")
        raise typer.Exit(code=1)
    finally:
        db.close()

    info = Table(title=f"Account {detail.id}", show_header=False)
    info.add_column("Field", style="cyan")
    info.add_column("Value", style="green")
    info.add_row("Name", detail.full_name)
    info.add_row("Email", detail.email)
    info.add_row("Registered", format_iso(detail.created_at) or "")
    info.add_row(
        "Profile",
        (detail.profile.description or "(empty)") if detail.profile else "(none)",
    )
    console.print(info)

    if not detail.contents:
        console.print("\nNo content yet.")
        return

    contents = Table(title="Content")
    contents.add_column("ID", justify="right", style="cyan")
    contents.add_column("Title", style="bold")
    contents.add_column("Status")
    for item in detail.contents:
        contents.add_row(str(item.id), item.title, item.status.value)
    console.print(contents)


if __name__ == "__main__":
    app()
