#!/usr/bin/env python3
"""
FeedHook - RSS/Atom to Webhook Relay
====================================

Main application entry point with CLI interface.

Usage:
    python main.py --help                    # Show all commands
    python main.py run                       # Poll feeds and deliver to webhooks
    python main.py run --dry-run             # Log payloads instead of posting
    python main.py check-config              # Validate configuration
    python main.py init-db                   # Initialize dedup store
    python main.py test-feeds                # Fetch every configured feed once
    python main.py export-schema             # Write config.schema.json
"""

import sys
import signal
import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from feedhook.config.settings import FeedHookSettings, load_settings, export_config_schema
from feedhook.database.schema import DatabaseSchema
from feedhook.database.connection import DatabaseConnection
from feedhook.processing.feed_fetcher import FeedFetcher
from feedhook.scheduler.feed_scheduler import FeedScheduler, compute_poll_interval
from feedhook.services.engine_context import create_engine_context
from feedhook.utils.logging import configure_application_logging
from feedhook.utils.exceptions import ConfigurationError, FeedHookError

console = Console()
logger = logging.getLogger(__name__)


def _load_settings(ctx) -> FeedHookSettings:
    """Load settings honouring the global --config and --debug options."""
    overrides = {"debug": True} if ctx.obj.get('debug') else {}
    return load_settings(ctx.obj.get('config_path'), **overrides)


def _configure_logging(settings: FeedHookSettings) -> None:
    configure_application_logging(
        log_level=settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )


@click.group(invoke_without_command=True)
@click.option('--config', '-c', help='Configuration file path (JSON)')
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, config, debug):
    """FeedHook - relay RSS/Atom feeds to webhooks."""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        # Show help if no subcommand provided
        click.echo(ctx.get_help())


@cli.command()
@click.option('--dry-run', is_flag=True, help='Log payloads instead of posting them')
@click.pass_context
def run(ctx, dry_run):
    """Poll every configured feed and deliver new entries until interrupted."""
    try:
        settings = _load_settings(ctx)
    except ConfigurationError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)

    _configure_logging(settings)

    try:
        asyncio.run(_run_engine(settings, dry_run or None))
    except ConfigurationError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)
    except FeedHookError as e:
        logger.error(f"Engine failed: {e}", extra=e.context)
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)


async def _run_engine(settings: FeedHookSettings, dry_run) -> None:
    async with create_engine_context(settings, dry_run=dry_run) as context:
        if context.dry_run:
            console.print("[yellow]🧪 Dry run: payloads are logged, nothing is posted[/yellow]")

        scheduler = FeedScheduler(context)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, lambda: asyncio.ensure_future(scheduler.stop()))
            except NotImplementedError:
                # Windows event loops do not support signal handlers
                pass

        try:
            await scheduler.run_forever()
        finally:
            await scheduler.stop()


@cli.command()
@click.pass_context
def check_config(ctx):
    """Validate configuration file and environment variables."""
    console.print("[bold blue]🔧 Checking FeedHook Configuration[/bold blue]")

    try:
        settings = _load_settings(ctx)
    except ConfigurationError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    checks = [
        ("Feeds", _check_feeds_config),
        ("Webhooks", _check_webhooks_config),
        ("Health Check", _check_health_config),
        ("Database", _check_database_config),
        ("Logging", _check_logging_config),
    ]

    all_passed = True
    for name, check_func in checks:
        try:
            status, details = check_func(settings)
            table.add_row(name, "✅ Valid" if status else "❌ Invalid", details)
            if not status:
                all_passed = False
        except Exception as e:
            table.add_row(name, "❌ Error", str(e))
            all_passed = False

    console.print(table)

    if all_passed:
        console.print("[bold green]✅ All configuration checks passed![/bold green]")
        sys.exit(0)
    else:
        console.print("[bold red]❌ Configuration validation failed[/bold red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def init_db(ctx):
    """Initialize the dedup store schema."""
    console.print("[bold blue]🗄️ Initializing FeedHook Dedup Store[/bold blue]")

    try:
        settings = _load_settings(ctx)
        schema = DatabaseSchema(settings.database.path)
        schema.create_tables()

        if not schema.verify_schema():
            console.print("[bold red]❌ Database schema verification failed[/bold red]")
            sys.exit(1)

        console.print("[bold green]✅ Database initialized successfully![/bold green]")

        db = DatabaseConnection(settings.database.path, pool_size=1)
        try:
            info = db.get_database_info()
        finally:
            db.close_all_connections()

        info_table = Table(title="Database Information")
        info_table.add_column("Property", style="cyan")
        info_table.add_column("Value", style="green")

        info_table.add_row("Database Path", settings.database.path)
        info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
        info_table.add_row("Delivered Entries", str(info['table_counts']['delivered_entries']))
        info_table.add_row("Initialised Feeds", str(info['table_counts']['feed_meta']))

        console.print(info_table)

    except ConfigurationError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[bold red]❌ Database initialization error: {e}[/bold red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def test_feeds(ctx):
    """Fetch every configured feed once without delivering anything."""
    console.print("[bold blue]📡 Testing Feed Connectivity[/bold blue]")

    try:
        settings = _load_settings(ctx)
    except ConfigurationError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)

    _configure_logging(settings)

    async def run_tests():
        results = []
        async with FeedFetcher.create_session(settings) as session:
            fetcher = FeedFetcher(settings, session)
            for feed_config in settings.feeds:
                try:
                    feed = await fetcher.fetch(feed_config.url)
                    interval = compute_poll_interval(
                        feed.ttl_minutes,
                        settings.scheduler.default_interval_minutes,
                        settings.scheduler.max_interval_minutes,
                    )
                    results.append((feed_config, True, feed.display_title(),
                                    str(len(feed.entries)), f"{interval:g} min"))
                except FeedHookError as e:
                    results.append((feed_config, False, e.user_message, "-", "-"))
        return results

    results = asyncio.run(run_tests())

    table = Table(title="Feed Test Results")
    table.add_column("Feed", style="cyan")
    table.add_column("Status")
    table.add_column("Title / Error")
    table.add_column("Entries", justify="right")
    table.add_column("Interval", justify="right")
    table.add_column("Image Mode")

    for feed_config, ok, title, entries, interval in results:
        table.add_row(
            feed_config.url,
            "✅ OK" if ok else "❌ Failed",
            title,
            entries,
            interval,
            feed_config.image_mode.value,
        )

    console.print(table)

    if all(ok for _, ok, *_ in results):
        console.print("[bold green]✅ All feeds reachable![/bold green]")
    else:
        console.print("[bold red]❌ Some feeds could not be fetched[/bold red]")
        sys.exit(1)


@cli.command()
@click.option('--output', '-o', default='config.schema.json', show_default=True,
              help='Where to write the JSON Schema')
def export_schema(output):
    """Write the JSON Schema of the configuration file."""
    try:
        path = export_config_schema(output)
    except OSError as e:
        console.print(f"[bold red]❌ Could not write schema: {e}[/bold red]")
        sys.exit(1)

    console.print(f"[bold green]✅ Schema written to {path}[/bold green]")


# Helper functions for configuration checks
def _check_feeds_config(settings) -> tuple[bool, str]:
    """Check feed configuration."""
    if not settings.feeds:
        return False, "No feeds given in config"
    html_feeds = sum(1 for feed in settings.feeds if feed.image_mode.value == "html")
    return True, f"{len(settings.feeds)} feed(s), {html_feeds} with HTML images"


def _check_webhooks_config(settings) -> tuple[bool, str]:
    """Check webhook configuration."""
    if not settings.webhooks:
        return False, "No webhooks given in config"
    mode = "dry run" if settings.delivery.dry_run else "live"
    return True, f"{len(settings.webhooks)} webhook(s), {mode}"


def _check_health_config(settings) -> tuple[bool, str]:
    """Check health check configuration."""
    if settings.health_check is None:
        return True, "Disabled"
    hc = settings.health_check
    return True, f"{hc.method} {hc.endpoint} every {hc.interval:g}s"


def _check_database_config(settings) -> tuple[bool, str]:
    """Check database configuration."""
    try:
        db_path = Path(settings.database.path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Path: {settings.database.path}"
    except Exception as e:
        return False, str(e)


def _check_logging_config(settings) -> tuple[bool, str]:
    """Check logging configuration."""
    try:
        if settings.logging.file_path:
            log_path = Path(settings.logging.file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Level: {settings.get_effective_log_level()}, Console: {settings.logging.console_logging}"
    except Exception as e:
        return False, str(e)


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 FeedHook interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[bold red]❌ Unexpected error: {e}[/bold red]")
        sys.exit(1)
