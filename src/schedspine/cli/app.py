"""
Root Typer application for the schedspine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from schedspine.cli.utils import console, open_backend
from schedspine.core.logging import configure_logging
from schedspine.core.settings import BackendSettings

app = Typer(
    name="schedspine",
    help="schedspine: lease-based distributed schedule storage.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from schedspine import __version__

        typer.echo(f"schedspine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level (default: SCHEDSPINE_LOG_LEVEL)."),
) -> None:
    """schedspine CLI: create the schedule table and manage schedules."""
    level = "INFO" if verbose else BackendSettings().log_level
    configure_logging(level=level, json_format=False)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("init")
def init_database(
    url: str | None = typer.Option(None, "--url", "-u", help="Database URL (default: SCHEDSPINE_URL)"),
    table: str | None = typer.Option(None, "--table", "-t", help="Table name (default: SCHEDSPINE_TABLE)"),
    force: bool = typer.Option(False, "--force", help="Drop an existing table first."),
) -> None:
    """Create the schedule table."""
    if force:
        typer.confirm("This drops the schedule table and every schedule in it. Continue?", abort=True)
    with open_backend(url, table) as backend:
        backend.init_database(force=force)
        console.print(f"[green]Initialized[/green] table [bold]{backend.table}[/bold] ({backend.info.backend})")


# ── Sub-command registration ─────────────────────────────────────────────

from schedspine.cli.schedule import app as schedule_app  # noqa: E402

app.add_typer(schedule_app, name="schedule", help="Schedule management.")
