"""Typer app: root commands (sync, pages, summary, references, API listings) and command groups."""

from __future__ import annotations

from typing import Optional

import typer

from ffctx.cli._shared import FORMAT_OPTION, get_client, get_settings, get_store, run
from ffctx.core.archive import DecodeError
from ffctx.core.cache import StorageError
from ffctx.core.fetch import FetchError
from ffctx.core.formatter import (
    format_component_summary,
    format_component_usages,
    format_page_navigations,
    format_page_summary,
)
from ffctx.core.nodes import document_name
from ffctx.core.outline import StructureError
from ffctx.core.references import find_component_usages, find_page_navigations
from ffctx.core.summary import (
    COMPONENT_PREFIX,
    PAGE_PREFIX,
    PageNotFoundError,
    PageSummarizer,
    cached_component_names,
    cached_page_names,
    find_component,
    find_page,
)
from ffctx.core.sync import list_pages, sync_project
from ffctx.sources.flutterflow import FlutterFlowAPIError
from ffctx.utils.output import error, info, output, output_table, success

app = typer.Typer(
    name="ffctx",
    help="ff-context: cached, summarized access to FlutterFlow project YAML.",
    no_args_is_help=True,
)

_CLI_ERRORS = (
    DecodeError,
    FetchError,
    FlutterFlowAPIError,
    PageNotFoundError,
    StorageError,
    StructureError,
)


@app.command()
def sync(
    project_id: str = typer.Argument(..., help="FlutterFlow project ID"),
    force: bool = typer.Option(False, "--force", "-f", help="Re-download even if cached"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Download a project's YAML files into the local cache."""
    settings = get_settings()
    store = get_store(settings)
    client = get_client(settings)
    try:
        result = run(
            sync_project(
                store,
                client,
                project_id,
                force=force,
                batch_size=settings.batch_size,
                retries=settings.fetch_retries,
            ),
            client,
        )
    except _CLI_ERRORS as e:
        error(str(e))
        raise typer.Exit(1)

    if fmt == "json":
        output(result, fmt=fmt)
    elif result.status == "error":
        error(result.message)
        raise typer.Exit(1)
    elif result.status == "already_cached":
        info(f"{project_id} already cached ({result.synced_files} files, {result.method}). Use --force to re-sync.")
    else:
        msg = f"Synced {result.synced_files} files for {project_id} ({result.method})"
        if result.failed:
            msg += f", {result.failed} failed"
        success(msg)


@app.command()
def pages(
    project_id: str = typer.Argument(..., help="FlutterFlow project ID"),
    offline: bool = typer.Option(False, "--offline", help="Only list pages already in the cache"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """List pages with their folders."""
    settings = get_settings()
    store = get_store(settings)
    client = None if offline else get_client(settings, required=False)
    try:
        rows = run(list_pages(store, project_id, client, batch_size=settings.batch_size), client)
    except _CLI_ERRORS as e:
        error(str(e))
        raise typer.Exit(1)

    if not rows and fmt != "json":
        info(f"No pages found for {project_id}")
        return
    output_table(
        [p.model_dump() for p in rows],
        ["folder", "name", "scaffold_id"],
        fmt=fmt,
        title=f"Pages in {project_id}",
    )


def _lookup(store, project_id: str, target: str, component: bool) -> str:
    """Resolve a page/component name or ID to its cached file key, exiting when it is unknown."""
    if store.meta(project_id) is None:
        error(f"No cache for {project_id}. Run `ffctx sync {project_id}` first.")
        raise typer.Exit(1)
    if component:
        by_id = target.startswith("Container_")
        key = find_component(store, project_id, None if by_id else target, target if by_id else None)
        available = cached_component_names
    else:
        by_id = target.startswith("Scaffold_")
        key = find_page(store, project_id, None if by_id else target, target if by_id else None)
        available = cached_page_names
    if key is None:
        error(f"'{target}' not found in cache. Available: {', '.join(available(store, project_id)) or '(none)'}")
        raise typer.Exit(1)
    return key


@app.command()
def summary(
    project_id: str = typer.Argument(..., help="FlutterFlow project ID"),
    target: str = typer.Argument(..., help="Page name or Scaffold ID (component name or Container ID with --component)"),
    component: bool = typer.Option(False, "--component", "-c", help="Summarize a component instead of a page"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Print a page or component widget-tree summary from the cache."""
    settings = get_settings()
    store = get_store(settings)
    try:
        key = _lookup(store, project_id, target, component)
    except _CLI_ERRORS as e:
        error(str(e))
        raise typer.Exit(1)

    client = get_client(settings, required=False)
    summarizer = PageSummarizer(store, client, batch_size=settings.batch_size, retries=settings.fetch_retries)
    try:
        if component:
            result = run(summarizer.summarize_component(project_id, key), client)
            text = format_component_summary(result)
        else:
            result = run(summarizer.summarize_page(project_id, key), client)
            text = format_page_summary(result)
    except _CLI_ERRORS as e:
        error(str(e))
        raise typer.Exit(1)

    if fmt == "json":
        output(result, fmt=fmt)
    else:
        output(text, fmt="text")


@app.command()
def usages(
    project_id: str = typer.Argument(..., help="FlutterFlow project ID"),
    target: str = typer.Argument(..., help="Component name or Container ID"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Show where a component is used, from cached widget files."""
    store = get_store()
    try:
        key = _lookup(store, project_id, target, component=True)
        container_id = key.removeprefix(COMPONENT_PREFIX)
        found = find_component_usages(store, project_id, container_id)
        name = document_name(store.read(project_id, key)) or container_id
    except _CLI_ERRORS as e:
        error(str(e))
        raise typer.Exit(1)

    if fmt == "json":
        output([u.model_dump() for u in found], fmt="json")
    else:
        output(format_component_usages(name, container_id, found), fmt="text")


@app.command()
def navigations(
    project_id: str = typer.Argument(..., help="FlutterFlow project ID"),
    target: str = typer.Argument(..., help="Page name or Scaffold ID"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Show which actions navigate to a page, from cached action files."""
    store = get_store()
    try:
        key = _lookup(store, project_id, target, component=False)
        scaffold_id = key.removeprefix(PAGE_PREFIX)
        found = find_page_navigations(store, project_id, scaffold_id)
        name = document_name(store.read(project_id, key)) or scaffold_id
    except _CLI_ERRORS as e:
        error(str(e))
        raise typer.Exit(1)

    if fmt == "json":
        output([r.model_dump() for r in found], fmt="json")
    else:
        output(format_page_navigations(name, scaffold_id, found), fmt="text")


@app.command()
def projects(
    project_type: Optional[str] = typer.Option(None, "--type", "-t", help="Project type filter"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """List projects the API token can access."""
    client = get_client()
    try:
        result = run(client.list_projects(project_type), client)
    except _CLI_ERRORS as e:
        error(str(e))
        raise typer.Exit(1)
    output(result, fmt=fmt)


@app.command()
def files(
    project_id: str = typer.Argument(..., help="FlutterFlow project ID"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """List every file key of a project as reported by the API."""
    client = get_client()
    try:
        keys = run(client.list_files(project_id), client)
    except _CLI_ERRORS as e:
        error(str(e))
        raise typer.Exit(1)

    if fmt == "json":
        output({"project_id": project_id, "count": len(keys), "files": keys}, fmt="json")
    else:
        output("\n".join(keys), fmt="text")


# Register subcommand groups
from ffctx.cli.cache_cmd import cache_app
from ffctx.cli.config_cmd import config_app

app.add_typer(cache_app, name="cache", help="Inspect and clear the local project cache")
app.add_typer(config_app, name="config", help="Manage global configuration")
