"""
CLI utility helpers: backend construction, error reporting, output formatting.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, is_dataclass
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from schedspine.core.errors import SchedSpineError
from schedspine.core.logging import LogContext
from schedspine.core.settings import BackendSettings
from schedspine.scheduling.backend import LeaseBackend
from schedspine.scheduling.models import ScheduleMetadata

console = Console()
err_console = Console(stderr=True)


# ── Backend helper ───────────────────────────────────────────────────────


@contextmanager
def open_backend(url: str | None = None, table: str | None = None) -> Iterator[LeaseBackend]:
    """Open a backend; options override ``SCHEDSPINE_*`` settings. Errors exit with code 1."""
    with cli_errors():
        settings = BackendSettings()
        overrides = {k: v for k, v in (("url", url), ("table", table)) if v}
        backend = LeaseBackend.from_settings(settings.model_copy(update=overrides))
        try:
            with LogContext(table=backend.table, backend=backend.info.backend):
                yield backend
        finally:
            backend.close()


@contextmanager
def cli_errors() -> Iterator[None]:
    """Render schedspine errors on stderr and exit non-zero."""
    try:
        yield
    except SchedSpineError as e:
        err_console.print(f"[bold red]Error[/bold red] ({type(e).__name__}): {e.message}")
        raise typer.Exit(code=1) from e


# ── Output helpers ───────────────────────────────────────────────────────


def schedule_to_dict(meta: ScheduleMetadata) -> dict[str, Any]:
    """Flatten a schedule for display."""
    attrs = asdict(meta.attributes)
    attrs.pop("message", None)
    attrs.pop("node", None)
    return {"key": meta.key, **attrs}


def _to_dict(obj: Any) -> dict[str, Any]:
    if isinstance(obj, ScheduleMetadata):
        return schedule_to_dict(obj)
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_result(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render one item or a list of items to the terminal."""
    if as_json:
        payload = [_to_dict(d) for d in data] if isinstance(data, list | tuple) else _to_dict(data)
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No schedules.[/dim]")
            return
        _print_table(data, title=title)
    else:
        _print_dict(_to_dict(data), title=title)


# ── Private helpers ──────────────────────────────────────────────────────


def _print_table(items: list, *, title: str = "") -> None:
    """Render a list of schedules/dicts as a Rich table."""
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(str(v) for v in d.values()))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
