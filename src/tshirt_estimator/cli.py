"""Command-line interface for the T-shirt Estimator."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .migrations.cli import app as migrate_app

app = typer.Typer(
    name="tshirt-estimator",
    help="Size tasks with T-shirt estimates and run team voting sessions.",
    add_completion=False,
    no_args_is_help=True,
)
app.add_typer(migrate_app, name="migrate")

console = Console()

ENV_TEMPLATE = """\
# T-shirt Estimator settings. Every value is optional.

HOST=127.0.0.1
PORT=5000

RECENT_TASKS_LIMIT=10
SIMILAR_TASKS_LIMIT=3
DEFAULT_PREDICTION_ACCURACY=82

DATABASE_PATH=./data/estimator.db
SEED_DEMO_DATA=false

# Jira import is enabled only when all three are set
JIRA_BASE_URL=
JIRA_EMAIL=
JIRA_API_TOKEN=
JIRA_TIMEOUT=10.0

LOG_LEVEL=INFO
LOG_FORMAT=console
"""


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Route structlog through the standard library logger.

    Args:
        log_level: Minimum level name, e.g. DEBUG or WARNING
        log_format: ``console`` for colored output via rich, otherwise JSON lines
    """
    console_output = log_format.lower() == "console"

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer()
            if console_output
            else structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler: logging.Handler = (
        RichHandler(console=console, show_time=False, rich_tracebacks=True)
        if console_output
        else logging.StreamHandler(sys.stdout)
    )
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


@app.command()  # type: ignore[misc]
def version() -> None:
    """Print the installed version."""
    console.print(f"tshirt-estimator {__version__}")


@app.command()  # type: ignore[misc]
def server(
    host: str | None = typer.Option(None, "--host", help="Bind address (default HOST)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port (default PORT)"),
    env_file: Path | None = typer.Option(
        None, "--env-file", "-e", exists=True, dir_okay=False, help="Read settings from this file"
    ),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
) -> None:
    """Serve the REST API and the /ws update socket with uvicorn."""
    import uvicorn

    from .config import Config
    from .container import Container
    from .fastapi_app import create_app

    config = Config(_env_file=env_file) if env_file else Config()
    setup_logging(config.log_level, config.log_format)
    logger = structlog.get_logger(__name__)

    bind_host = host or config.host
    bind_port = port or config.port
    logger.info(
        "Starting server", host=bind_host, port=bind_port, database=str(config.database_path)
    )

    # uvicorn can only reload an import string; that app builds its own Config
    target = "tshirt_estimator.fastapi_app:app" if reload else create_app(Container(config))
    try:
        uvicorn.run(target, host=bind_host, port=bind_port, reload=reload, log_config=None)
    except KeyboardInterrupt:
        logger.info("Server stopped")


@app.command()  # type: ignore[misc]
def estimate(
    title: str = typer.Argument(..., help="Task title"),
    description: str = typer.Argument("", help="Task description"),
) -> None:
    """Size a task from the command line without storing it."""
    from .estimator import SizeEstimator

    estimator = SizeEstimator()
    result = estimator.estimate(title, description)

    table = Table(show_header=True, header_style="bold")
    for column in ("Size", "Points", "Confidence", "Score"):
        table.add_column(column)
    table.add_row(
        result.size.value,
        str(result.points),
        f"{result.confidence}%",
        str(estimator.score(title, description)),
    )
    console.print(table)


@app.command()  # type: ignore[misc]
def seed(
    db_path: Path | None = typer.Option(None, "--db-path", help="SQLite database file"),
) -> None:
    """Add demo users and finalized demo tasks to an empty database."""
    from .config import Config
    from .database import DatabaseManager
    from .seed import seed_demo_data

    users, tasks = seed_demo_data(DatabaseManager(db_path or Config().database_path))
    if users or tasks:
        console.print(f"[green]Added {users} users and {tasks} tasks[/green]")
    else:
        console.print("Database already has users and tasks; nothing added.")


@app.command("init-config")  # type: ignore[misc]
def init_config(
    output: Path = typer.Option(Path(".env"), "--output", "-o", help="Where to write"),
    force: bool = typer.Option(False, "--force", "-f", help="Replace an existing file"),
) -> None:
    """Write a commented .env template."""
    if output.exists() and not force:
        console.print(f"[red]{output} exists; pass --force to replace it[/red]")
        raise typer.Exit(1)

    try:
        output.write_text(ENV_TEMPLATE)
    except OSError as e:
        console.print(f"[red]Could not write {output}: {e}[/red]")
        raise typer.Exit(1) from e
    console.print(f"Wrote {output}")


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
