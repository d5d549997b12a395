"""CLI interface for tiny-migrator."""

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from tinydb import TinyDB

from . import __version__
from .config import Config, load_config
from .migrations import (
    Migration,
    MigrationEngine,
    MigrationOutcome,
    MigrationReport,
    MigrationResources,
    VersionStore,
    VersionStoreError,
)
from .utils import ensure_dir, import_object

console = Console()

_OUTCOME_STYLES = {
    MigrationOutcome.APPLIED: "[green]applied[/green]",
    MigrationOutcome.SKIPPED: "[dim]skipped[/dim]",
    MigrationOutcome.FAILED: "[red]failed[/red]",
    MigrationOutcome.UNRECORDED: "[yellow]applied, not recorded[/yellow]",
}


def configure_logging(level: str) -> None:
    """
    Route log records through rich on stderr.

    Safe to call multiple times; only one RichHandler is installed.
    """
    root = logging.getLogger()
    root.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(handler)


def open_db(config: Config) -> TinyDB:
    """Open the TinyDB file named in the configuration, creating its directory."""
    ensure_dir(config.state_file.parent)
    return TinyDB(config.state_file)


def load_migrations(target: str) -> MigrationResources:
    """
    Resolve a "package.module:attribute" target to an ordered migration sequence.

    The attribute may be a MigrationResources, any iterable of migrations,
    or a callable returning one of those.

    Raises:
        ValueError, ImportError, AttributeError: If the target cannot be resolved
        TypeError: If it does not resolve to migrations
    """
    obj: Any = import_object(target)
    if callable(obj) and not isinstance(obj, (MigrationResources, Migration)):
        obj = obj()
    if isinstance(obj, MigrationResources):
        return obj
    if isinstance(obj, Migration) or isinstance(obj, (str, bytes)):
        raise TypeError(f"'{target}' must name a sequence of migrations")
    try:
        return MigrationResources(obj)
    except TypeError as e:
        raise TypeError(f"'{target}' must name a sequence of migrations: {e}") from e


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Custom config file path",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="TinyDB file to migrate (overrides config)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config: Path | None, db_path: Path | None, verbose: bool) -> None:
    """tiny-migrator: apply versioned migrations to a TinyDB database."""
    ctx.ensure_object(dict)

    try:
        loaded = load_config(config)
        if db_path is not None:
            loaded = loaded.model_copy(update={"state_file": db_path.expanduser().resolve()})
    except (FileNotFoundError, ValueError, OSError, PermissionError) as e:
        console.print(f"[red]Error:[/red] Configuration: {e}")
        sys.exit(1)

    ctx.obj["config"] = loaded
    configure_logging("DEBUG" if verbose else loaded.log_level)


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """
    Create the version table if it does not exist.

    Safe to run repeatedly; existing version records are kept.
    """
    config = ctx.obj["config"]

    try:
        with open_db(config) as db:
            VersionStore(db, config.version_table).bootstrap()
    except (VersionStoreError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    console.print(f"[green]✓[/green] Version table '{config.version_table}' ready in {config.state_file}")


@cli.command()
@click.option(
    "--format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format: table (default) or json",
)
@click.pass_context
def status(ctx: click.Context, format: str) -> None:
    """
    Show the current version of every migration category.

    Examples:

        \b
        # Show versions as a table
        tiny-migrator status

        \b
        # Output as JSON for scripting
        tiny-migrator status --format json
    """
    config = ctx.obj["config"]

    try:
        with open_db(config) as db:
            store = VersionStore(db, config.version_table)
            latest = [store.latest(category) for category in store.categories()]
    except (VersionStoreError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    records = [record for record in latest if record is not None]

    if format == "json":
        output = {record.category: record.version for record in records}
        print(json.dumps(output, indent=2))
        return

    if not records:
        console.print("No migrations applied.")
        return

    table = Table(title="Current Versions")
    table.add_column("Category", style="cyan")
    table.add_column("Version", justify="right")
    table.add_column("Last Migration")
    table.add_column("Applied", style="dim")

    for record in records:
        table.add_row(
            record.category,
            str(record.version),
            record.description,
            record.applied_at.strftime("%Y-%m-%d %H:%M:%S"),
        )

    console.print(table)


@cli.command()
@click.option("--category", "-c", help="Only show records for this category")
@click.option(
    "--format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format: table (default) or json",
)
@click.pass_context
def history(ctx: click.Context, category: str | None, format: str) -> None:
    """
    List applied migrations recorded in the version table.

    Examples:

        \b
        # Full history
        tiny-migrator history

        \b
        # Only data migrations, as JSON
        tiny-migrator history --category data --format json
    """
    config = ctx.obj["config"]

    try:
        with open_db(config) as db:
            records = VersionStore(db, config.version_table).history(category)
    except (VersionStoreError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if format == "json":
        print(json.dumps([record.model_dump(mode="json") for record in records], indent=2))
        return

    if not records:
        console.print("No migrations applied.")
        return

    table = Table(title="Migration History")
    table.add_column("Category", style="cyan")
    table.add_column("Version", justify="right")
    table.add_column("Description")
    table.add_column("Applied", style="dim")

    for record in records:
        table.add_row(
            record.category,
            str(record.version),
            record.description,
            record.applied_at.strftime("%Y-%m-%d %H:%M:%S"),
        )

    console.print(table)


@cli.command()
@click.argument("target")
@click.pass_context
def migrate(ctx: click.Context, target: str) -> None:
    """
    Apply pending migrations from TARGET.

    TARGET is "package.module:attribute" naming a MigrationResources, a list
    of migrations, or a function returning one. Migrations are applied in the
    order given; the run stops at the first failure.

    Examples:

        \b
        # Apply the migrations registered in myapp/migrations.py
        tiny-migrator migrate myapp.migrations:MIGRATIONS
    """
    config = ctx.obj["config"]

    try:
        migrations = load_migrations(target)
    except (ValueError, ImportError, AttributeError, TypeError) as e:
        console.print(f"[red]Error:[/red] Loading migrations: {e}")
        sys.exit(1)

    try:
        with open_db(config) as db:
            engine = MigrationEngine(db, table_name=config.version_table)
            report = engine.run(migrations)
    except (VersionStoreError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    _display_report(report)

    if not report.success:
        failure = report.failure
        if failure is None:
            console.print(f"[red]Error:[/red] Reading migrations from {target}: {report.error}")
            sys.exit(1)

        console.print(
            f"[red]Error:[/red] Migration {failure.migration.category} v{failure.migration.version} "
            f"failed: {failure.error}"
        )
        if failure.outcome is MigrationOutcome.UNRECORDED:
            console.print(
                "[yellow]Hint:[/yellow] The change was applied but not recorded; "
                "it will run again on the next migrate."
            )
        sys.exit(1)

    console.print(f"[green]✓[/green] Migrations complete: {report.summary()}")


def _display_report(report: MigrationReport) -> None:
    """Display per-migration results."""
    if not report.results:
        console.print("No migrations to apply.")
        return

    table = Table(title="Migration Results")
    table.add_column("Category", style="cyan")
    table.add_column("Version", justify="right")
    table.add_column("Description")
    table.add_column("Result")
    table.add_column("Time", justify="right", style="dim")

    for result in report.results:
        table.add_row(
            result.migration.category,
            str(result.migration.version),
            result.migration.description(),
            _OUTCOME_STYLES[result.outcome],
            f"{result.duration:.2f}s" if result.outcome is not MigrationOutcome.SKIPPED else "",
        )

    console.print(table)


if __name__ == "__main__":
    cli()
