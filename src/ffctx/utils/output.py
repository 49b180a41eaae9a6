"""CLI output helpers: JSON when piped or requested, rich text on a TTY."""

from __future__ import annotations

import json
import sys
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

console = Console()
error_console = Console(stderr=True)


def is_piped() -> bool:
    return not sys.stdout.isatty()


def _resolve_format(fmt: str | None) -> str:
    if fmt is None:
        return "json" if is_piped() else "text"
    return fmt


def output(data: Any, fmt: str | None = None, title: str | None = None) -> None:
    """Print a model, dict/list or plain string in the requested format.

    With fmt=None the format follows the terminal: json when piped, text otherwise.
    """
    if _resolve_format(fmt) == "json":
        if hasattr(data, "model_dump_json"):
            print(data.model_dump_json(indent=2))
        elif isinstance(data, (dict, list)):
            print(json.dumps(data, indent=2, default=str))
        else:
            print(json.dumps({"value": str(data)}))
        return

    if isinstance(data, str):
        # Summaries contain [slot] markers that rich would treat as markup.
        if title:
            console.print(Panel(Text(data), title=title))
        else:
            console.print(data, markup=False, highlight=False)
    elif hasattr(data, "model_dump_json"):
        console.print_json(data.model_dump_json())
    elif isinstance(data, (dict, list)):
        console.print_json(json.dumps(data, default=str))
    else:
        console.print(str(data))


def output_table(
    rows: list[dict[str, Any]],
    columns: list[str],
    fmt: str | None = None,
    title: str | None = None,
) -> None:
    if _resolve_format(fmt) == "json":
        print(json.dumps(rows, indent=2, default=str))
        return
    table = Table(title=title)
    for col in columns:
        table.add_column(col.replace("_", " ").title())
    for row in rows:
        table.add_row(*[str(row.get(col, "")) for col in columns])
    console.print(table)


def error(msg: str) -> None:
    error_console.print(f"[red]Error:[/red] {msg}", highlight=False)


def success(msg: str) -> None:
    console.print(f"[green]{msg}[/green]")


def info(msg: str) -> None:
    console.print(f"[dim]{msg}[/dim]")
