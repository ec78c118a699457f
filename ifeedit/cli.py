"""
iFeedIt Command Line
====================

Usage:
    ifeedit --help                     # Show all commands
    ifeedit check-config               # Validate configuration
    ifeedit init-db                    # Initialize database
    ifeedit refresh [URL]              # Replace stored items with a feed
    ifeedit refresh --if-changed       # Only reload when the URL changed
    ifeedit list --search TEXT         # List items, newest first
    ifeedit show ID                    # Show one item
"""

import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .ingestion.normalizer import html_to_text, summarize_description
from .ingestion.orchestrator import IngestionOrchestrator
from .storage.item_repository import ItemRepository
from .storage.preference_repository import PreferenceRepository
from .utils.exceptions import IFeedItError, get_user_friendly_message
from .utils.logging import configure_application_logging

console = Console()


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, debug):
    """iFeedIt - RSS feed reader."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def check_config():
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking iFeedIt Configuration[/bold blue]")

    try:
        settings = get_settings()
    except IFeedItError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    checks = [
        ("Feed", _check_feed_config),
        ("Database", _check_database_config),
        ("Logging", _check_logging_config),
    ]

    all_passed = True
    for name, check_func in checks:
        status, details = check_func(settings)
        table.add_row(name, "✅ Valid" if status else "❌ Invalid", details)
        all_passed = all_passed and status

    console.print(table)

    if all_passed:
        console.print("[bold green]✅ All configuration checks passed![/bold green]")
    else:
        console.print("[bold red]❌ Configuration validation failed[/bold red]")
        sys.exit(1)


@cli.command()
def init_db():
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing iFeedIt Database[/bold blue]")

    settings = get_settings()
    schema = DatabaseSchema(settings.database.path)
    schema.create_tables()

    if not schema.verify_schema():
        console.print("[bold red]❌ Database schema verification failed[/bold red]")
        sys.exit(1)

    console.print("[bold green]✅ Database initialized successfully![/bold green]")

    info = _db(settings).get_database_info()
    info_table = Table(title="Database Information")
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")
    info_table.add_row("Database Path", settings.database.path)
    info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
    info_table.add_row("Stored Items", str(info['table_counts']['items']))
    console.print(info_table)


@cli.command()
@click.argument('url', required=False)
@click.option('--if-changed', is_flag=True,
              help='Skip the refresh when URL is the last feed loaded successfully')
@click.pass_context
def refresh(ctx, url, if_changed):
    """Replace stored items with the content of a feed."""
    settings = get_settings()
    _configure_logging(settings, ctx.obj.get('debug', False))

    feed_url = url or settings.feed.url
    db_manager = _db(settings)
    DatabaseSchema(settings.database.path).create_tables()
    preferences = PreferenceRepository(db_manager)

    if if_changed and preferences.get_last_loaded_url() == feed_url:
        console.print(f"[yellow]Feed already loaded: {feed_url}[/yellow]")
        return

    console.print(f"[bold blue]📡 Refreshing feed: {feed_url}[/bold blue]")

    repository = ItemRepository(db_manager)
    orchestrator = IngestionOrchestrator(repository, preferences=preferences)
    try:
        with console.status("Loading items..."):
            succeeded = orchestrator.refresh(feed_url).result()
    except IFeedItError as e:
        console.print(f"[bold red]❌ {get_user_friendly_message(e)}[/bold red]")
        sys.exit(1)
    finally:
        orchestrator.shutdown()

    if not succeeded:
        console.print(f"[bold red]❌ Refresh failed, {repository.count_items()} items stored[/bold red]")
        sys.exit(1)

    console.print(f"[bold green]✅ Stored {repository.count_items()} items[/bold green]")


@cli.command(name='list')
@click.option('--search', '-s', default=None, help='Only items whose title contains TEXT')
def list_items(search):
    """List stored items, newest first."""
    settings = get_settings()
    items = ItemRepository(_db(settings)).query_items(search)

    if not items:
        console.print("[yellow]No items stored[/yellow]")
        return

    table = Table(title=f"Items ({len(items)})")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Published", style="green")
    table.add_column("Title")
    table.add_column("Summary", style="dim")

    for item in items:
        summary = summarize_description(item.description)
        table.add_row(
            str(item.id),
            _format_date(item.published),
            escape(html_to_text(item.title)),
            escape(summary[:80] + ("…" if len(summary) > 80 else "")),
        )

    console.print(table)


@cli.command()
@click.argument('item_id', type=int)
def show(item_id):
    """Show one stored item."""
    settings = get_settings()
    item = ItemRepository(_db(settings)).get_item(item_id)

    if item is None:
        console.print(f"[bold red]❌ Item {item_id} not found[/bold red]")
        sys.exit(1)

    if item.image_url:
        size = f"{len(item.image_content)} bytes" if item.image_content is not None else "not downloaded"
        image_line = f"{item.image_url} ({size})"
    else:
        image_line = "none"

    body = "\n".join([
        f"[cyan]Link:[/cyan] {escape(item.link)}",
        f"[cyan]Published:[/cyan] {_format_date(item.published)}",
        f"[cyan]Image:[/cyan] {escape(image_line)}",
        "",
        escape(html_to_text(item.description)),
    ])
    console.print(Panel(body, title=escape(html_to_text(item.title)) or f"Item {item.id}"))


def _db(settings):
    return get_db_manager(settings.database.path, settings.database.pool_size)


def _configure_logging(settings, debug: bool) -> None:
    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )


def _format_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "unknown"


# Helper functions for configuration checks
def _check_feed_config(settings) -> tuple[bool, str]:
    """Check feed configuration."""
    return True, f"URL: {settings.feed.url}"


def _check_database_config(settings) -> tuple[bool, str]:
    """Check database configuration."""
    try:
        Path(settings.database.path).parent.mkdir(parents=True, exist_ok=True)
        return True, f"Path: {settings.database.path}, Pool: {settings.database.pool_size}"
    except OSError as e:
        return False, str(e)


def _check_logging_config(settings) -> tuple[bool, str]:
    """Check logging configuration."""
    try:
        if settings.logging.file_path:
            Path(settings.logging.file_path).parent.mkdir(parents=True, exist_ok=True)
        return True, f"Level: {settings.logging.level.value}, Console: {settings.logging.console_logging}"
    except OSError as e:
        return False, str(e)
