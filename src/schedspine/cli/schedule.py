"""
CLI: ``schedspine schedule``: schedule definition commands.
"""

from __future__ import annotations

import json
from datetime import datetime

import typer

from schedspine.cli.utils import console, open_backend, output_result
from schedspine.scheduling.models import ScheduleUpdate

app = typer.Typer(no_args_is_help=True)

URL_OPTION = typer.Option(None, "--url", "-u", help="Database URL (default: SCHEDSPINE_URL)")
TABLE_OPTION = typer.Option(None, "--table", "-t", help="Table name (default: SCHEDSPINE_TABLE)")


@app.command("list")
def list_schedules(
    url: str | None = URL_OPTION,
    table: str | None = TABLE_OPTION,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List all schedules, next due first."""
    with open_backend(url, table) as backend:
        items = list(backend.list())
    output_result(items, as_json=json_out, title="Schedules")


@app.command("show")
def show_schedule(
    key: str = typer.Argument(..., help="Schedule key"),
    url: str | None = URL_OPTION,
    table: str | None = TABLE_OPTION,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show schedule details."""
    with open_backend(url, table) as backend:
        meta = backend.get_metadata(key)
    output_result(meta, as_json=json_out, title=f"Schedule: {key}")


@app.command("add")
def add_schedule(
    key: str = typer.Argument(..., help="Schedule key"),
    type_: str = typer.Option(..., "--type", help="Job type"),
    cron: str | None = typer.Option(None, "--cron", help="Cron expression (omit for one-shot)"),
    delay: int = typer.Option(0, "--delay", help="Seconds between occurrence and run time"),
    timezone: str = typer.Option("UTC", "--timezone", "--tz"),
    data: str | None = typer.Option(None, "--data", help="JSON object payload"),
    start: datetime | None = typer.Option(None, "--start", help="First occurrence (ISO 8601, UTC)"),
    url: str | None = URL_OPTION,
    table: str | None = TABLE_OPTION,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Define a new schedule."""
    payload = _parse_payload(data)
    with open_backend(url, table) as backend:
        backend.add(
            key,
            type_,
            cron,
            delay=delay,
            timezone=timezone,
            data=payload,
            start=start,
        )
        meta = backend.get_metadata(key)
    output_result(meta, as_json=json_out, title="Schedule Added")


@app.command("update")
def update_schedule(
    key: str = typer.Argument(..., help="Schedule key"),
    cron: str | None = typer.Option(None, "--cron"),
    delay: int | None = typer.Option(None, "--delay"),
    timezone: str | None = typer.Option(None, "--timezone", "--tz"),
    url: str | None = URL_OPTION,
    table: str | None = TABLE_OPTION,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Change cron, delay and/or timezone of a schedule."""
    update = ScheduleUpdate(cron=cron, delay=delay, timezone=timezone)
    if update.is_empty():
        console.print("[dim]Nothing to update.[/dim]")
        return
    with open_backend(url, table) as backend:
        backend.modify(key, update)
        meta = backend.get_metadata(key)
    output_result(meta, as_json=json_out, title="Schedule Updated")


@app.command("delete")
def delete_schedule(
    key: str = typer.Argument(..., help="Schedule key"),
    url: str | None = URL_OPTION,
    table: str | None = TABLE_OPTION,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Delete a schedule."""
    with open_backend(url, table) as backend:
        backend.delete(key)
    output_result({"key": key, "deleted": True}, as_json=json_out, title="Schedule Deleted")


def _parse_payload(data: str | None) -> dict | None:
    if data is None:
        return None
    try:
        payload = json.loads(data)
    except ValueError as e:
        raise typer.BadParameter(f"not valid JSON: {e}", param_hint="--data") from e
    if not isinstance(payload, dict):
        raise typer.BadParameter("must be a JSON object", param_hint="--data")
    return payload
