"""Cache subcommands: ls, search, show, clear, status."""

from __future__ import annotations

from typing import Optional

import typer

from ffctx.cli._shared import FORMAT_OPTION, get_store
from ffctx.core.cache import StorageError, cache_age_minutes
from ffctx.core.references import SEARCH_MODES, search_keys
from ffctx.utils.output import error, info, output, output_table, success

cache_app = typer.Typer(no_args_is_help=True)


@cache_app.command("ls")
def cache_ls(
    project_id: str = typer.Argument(..., help="FlutterFlow project ID"),
    prefix: Optional[str] = typer.Option(None, "--prefix", "-p", help="Only keys starting with this prefix"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """List cached file keys."""
    try:
        keys = get_store().list_keys(project_id, prefix)
    except StorageError as e:
        error(str(e))
        raise typer.Exit(1)
    if fmt == "json":
        output(keys, fmt="json")
    elif not keys:
        info(f"No cached files for {project_id}")
    else:
        for key in keys:
            typer.echo(key)


@cache_app.command("search")
def cache_search(
    project_id: str = typer.Argument(..., help="FlutterFlow project ID"),
    query: str = typer.Argument(..., help="Text or pattern to match against file keys"),
    mode: str = typer.Option("contains", "--mode", "-m", help=f"One of: {', '.join(SEARCH_MODES)}"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Search cached file keys by prefix, substring or regex."""
    try:
        keys = search_keys(get_store().list_keys(project_id), query, mode)
    except (StorageError, ValueError) as e:
        error(str(e))
        raise typer.Exit(1)
    if fmt == "json":
        output(keys, fmt="json")
    elif not keys:
        info(f"No cached files matching '{query}'")
    else:
        for key in keys:
            typer.echo(key)


@cache_app.command("show")
def cache_show(
    project_id: str = typer.Argument(..., help="FlutterFlow project ID"),
    file_key: str = typer.Argument(..., help="File key, e.g. page/id-Scaffold_abc"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Print one cached YAML file."""
    try:
        content = get_store().read(project_id, file_key)
    except StorageError as e:
        error(str(e))
        raise typer.Exit(1)
    if content is None:
        error(f"{file_key} is not cached for {project_id}")
        raise typer.Exit(1)
    if fmt == "json":
        output({"file_key": file_key, "content": content}, fmt="json")
    else:
        typer.echo(content)


@cache_app.command("clear")
def cache_clear(
    project_id: str = typer.Argument(..., help="FlutterFlow project ID"),
    file_key: Optional[str] = typer.Argument(None, help="Single file key; omit to clear the whole project"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Remove a cached file, or a project's whole cache."""
    try:
        removed = get_store().invalidate(project_id, file_key)
    except StorageError as e:
        error(str(e))
        raise typer.Exit(1)
    target = file_key or project_id
    if fmt == "json":
        output({"status": "removed" if removed else "not_found", "target": target}, fmt="json")
    elif removed:
        success(f"Cleared {target}")
    else:
        info(f"Nothing cached for {target}")


@cache_app.command("status")
def cache_status(
    project_id: Optional[str] = typer.Argument(None, help="Limit to one project"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Show sync time, method and age for cached projects."""
    store = get_store()
    project_ids = [project_id] if project_id else store.projects()
    rows = []
    try:
        for pid in project_ids:
            meta = store.meta(pid)
            rows.append(
                {
                    "project": pid,
                    "files": len(store.list_keys(pid)),
                    "method": meta.sync_method if meta else "",
                    "synced_at": meta.last_synced_at.isoformat() if meta else "never",
                    "age_minutes": cache_age_minutes(meta) if meta else "",
                }
            )
    except StorageError as e:
        error(str(e))
        raise typer.Exit(1)

    if not rows and fmt != "json":
        info(f"Cache is empty ({store.root})")
        return
    output_table(rows, ["project", "files", "method", "synced_at", "age_minutes"], fmt=fmt)
