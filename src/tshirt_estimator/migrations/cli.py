"""``tshirt-estimator migrate`` commands."""

# mypy: disable-error-code=misc

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ..config import Config
from .base import MigrationError
from .runner import MigrationRunner
from .versions import ALL_MIGRATIONS

console = Console()
app = typer.Typer(name="migrate", help="Inspect and change the database schema version")

DbPathOption = typer.Option(
    None, "--db-path", help="SQLite database file (default DATABASE_PATH)"
)


def _runner(db_path: Path | None) -> MigrationRunner:
    runner = MigrationRunner(db_path or Config().database_path)
    runner.register_migrations(ALL_MIGRATIONS)
    return runner


@app.command()
def status(db_path: Path | None = DbPathOption) -> None:
    """List every known migration and whether it has been applied."""
    table = Table(title="Schema migrations")
    for column in ("Version", "Description", "State", "Applied", "Reversible"):
        table.add_column(column)

    for version, info in _runner(db_path).get_migration_status().items():
        applied = info["status"] == "applied"
        state = "[green]applied[/green]" if applied else "[yellow]pending[/yellow]"
        table.add_row(
            version,
            info["description"],
            state,
            info["applied_at"] or "-",
            "yes" if info["can_rollback"] else "no",
        )

    console.print(table)


@app.command()
def run(
    target_version: str | None = typer.Argument(None, help="Stop after this version"),
    db_path: Path | None = DbPathOption,
    dry_run: bool = typer.Option(False, "--dry-run", help="Only list pending migrations"),
) -> None:
    """Apply pending migrations."""
    try:
        versions = _runner(db_path).run_migrations(target_version=target_version, dry_run=dry_run)
    except MigrationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    if not versions:
        console.print("Schema is up to date.")
    elif dry_run:
        console.print(f"Pending: {', '.join(versions)}")
    else:
        console.print(f"[green]Applied: {', '.join(versions)}[/green]")


@app.command()
def rollback(
    version: str = typer.Argument(..., help="Version to undo"),
    db_path: Path | None = DbPathOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Undo a single applied migration."""
    if not yes and not typer.confirm(f"Roll back migration {version}?"):
        console.print("Aborted.")
        return

    try:
        _runner(db_path).rollback_migration(version)
    except MigrationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    console.print(f"[green]Rolled back {version}[/green]")


@app.command()
def validate(db_path: Path | None = DbPathOption) -> None:
    """Check that the schema still matches every applied migration."""
    if not _runner(db_path).validate_migrations():
        console.print("[red]Schema does not match applied migrations[/red]")
        raise typer.Exit(1)
    console.print("[green]Schema matches applied migrations[/green]")
