"""MCP server exposing the FlutterFlow project cache as tools, resources, and prompts."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from ffctx.core.archive import DecodeError
from ffctx.core.cache import CacheStore, StorageError, cache_age_footer
from ffctx.core.fetch import FetchError
from ffctx.core.formatter import (
    format_component_summary,
    format_component_usages,
    format_page_navigations,
    format_page_summary,
)
from ffctx.core.nodes import document_name
from ffctx.core.outline import StructureError
from ffctx.core.references import MAX_SEARCH_RESULTS, search_keys
from ffctx.core.references import find_component_usages as scan_component_usages
from ffctx.core.references import find_page_navigations as scan_page_navigations
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
from ffctx.core.sync import list_pages as build_page_index
from ffctx.core.sync import fetch_project_yaml, page_yaml_by_name, push_files, validate_file
from ffctx.core.sync import sync_project as run_sync
from ffctx.core.values import UNKNOWN_TYPE, infer_type
from ffctx.sources.base import ProjectSource
from ffctx.sources.flutterflow import FlutterFlowAPIError, create_client
from ffctx.utils.config import Settings, load_settings

logger = logging.getLogger(__name__)

_INSTRUCTIONS = (
    "ff-context reads FlutterFlow projects through a local YAML cache. "
    "Run sync_project once per project, then use get_page_summary and "
    "get_component_summary for compact widget trees, and get_cached_file for raw YAML. "
    "Use find_component_usages, find_page_navigations, and search_project_files to trace references. "
    "Always call validate_yaml before update_project_yaml."
)

_TOOL_ERRORS = (
    DecodeError,
    FetchError,
    FlutterFlowAPIError,
    PageNotFoundError,
    StorageError,
    StructureError,
)

_settings: Settings | None = None
_store: CacheStore | None = None
_client: ProjectSource | None = None


@asynccontextmanager
async def _server_lifespan(app: FastMCP) -> AsyncIterator[None]:
    """MCP server lifespan: close the HTTP client on shutdown."""
    try:
        yield
    finally:
        aclose = getattr(_client, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except Exception:
                logger.debug("Client close failed on shutdown", exc_info=True)


mcp = FastMCP("ff-context", instructions=_INSTRUCTIONS, lifespan=_server_lifespan)


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def _get_store() -> CacheStore:
    """Return the module-level store, creating it from settings if needed."""
    global _store
    if _store is None:
        _store = CacheStore(_get_settings().cache_dir)
    return _store


def _get_client() -> ProjectSource:
    """Return the API client; raises FlutterFlowAPIError when no token is configured."""
    global _client
    if _client is None:
        _client = create_client(_get_settings())
    return _client


def _optional_client() -> ProjectSource | None:
    """The API client if a token is configured; summaries then fall back to it on cache misses."""
    try:
        return _get_client()
    except FlutterFlowAPIError:
        return None


def set_settings(settings: Settings | None) -> None:
    """Override the module-level settings (used in tests)."""
    global _settings
    _settings = settings


def set_store(store: CacheStore | None) -> None:
    """Override the module-level store (used in tests)."""
    global _store
    _store = store


def set_client(client: ProjectSource | None) -> None:
    """Override the module-level API client (used in tests)."""
    global _client
    _client = client


def _error(msg: str | Exception) -> str:
    return json.dumps({"status": "error", "error": str(msg)})


def _no_cache(project_id: str) -> str:
    return _error(
        f'No cache found for project "{project_id}". '
        "Run sync_project first to download the project YAML files."
    )


def _page_not_found(store: CacheStore, project_id: str, page: str) -> str:
    available = "\n".join(f"  - {n}" for n in cached_page_names(store, project_id))
    return _error(f'Page "{page}" not found in cache. Available pages:\n{available}')


def _component_not_found(store: CacheStore, project_id: str, component: str) -> str:
    available = "\n".join(f"  - {n}" for n in cached_component_names(store, project_id))
    return _error(f'Component "{component}" not found in cache. Available components:\n{available}')


def _summarizer(store: CacheStore) -> PageSummarizer:
    settings = _get_settings()
    return PageSummarizer(
        store, _optional_client(), batch_size=settings.batch_size, retries=settings.fetch_retries
    )


def _node_type(file_key: str) -> str | None:
    """Widget type of the innermost ``node/id-<Key>`` segment, or None."""
    _, sep, rest = file_key.rpartition("node/id-")
    if not sep:
        return None
    widget_type = infer_type(rest.split("/", 1)[0])
    return None if widget_type == UNKNOWN_TYPE else widget_type


# ---------------------------------------------------------------------------
# Resources (read-only)
# ---------------------------------------------------------------------------


@mcp.resource("ffctx://projects/{project_id}/cache")
def resource_project_cache(project_id: str) -> str:
    """Cache status and cached file keys for a project."""
    store = _get_store()
    meta = store.meta(project_id)
    return json.dumps(
        {
            "project_id": project_id,
            "synced": meta is not None,
            "meta": meta.model_dump(mode="json") if meta else None,
            "keys": store.list_keys(project_id),
        },
        indent=2,
    )


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def sync_project(project_id: str, force: bool = False) -> str:
    """Download all YAML files of a project into the local cache.

    Tries one bulk archive first and falls back to fetching top-level files
    in small batches. Run this before get_page_summary or get_cached_file.

    Args:
        project_id: The FlutterFlow project ID
        force: Re-download even if the project is already cached
    """
    settings = _get_settings()
    try:
        result = await run_sync(
            _get_store(),
            _get_client(),
            project_id,
            force=force,
            batch_size=settings.batch_size,
            retries=settings.fetch_retries,
        )
    except _TOOL_ERRORS as e:
        return _error(e)
    return result.model_dump_json(indent=2)


@mcp.tool()
async def list_pages(project_id: str) -> str:
    """List all pages with their names and folders, sorted by folder then name.

    Uses the API when a token is configured; otherwise lists cached pages only.

    Args:
        project_id: The FlutterFlow project ID
    """
    store = _get_store()
    try:
        pages = await build_page_index(
            store, project_id, _optional_client(), batch_size=_get_settings().batch_size
        )
    except _TOOL_ERRORS as e:
        return _error(e)
    return json.dumps(
        {
            "project_id": project_id,
            "count": len(pages),
            "pages": [p.model_dump() for p in pages],
        },
        indent=2,
    )


@mcp.tool()
async def get_page_summary(project_id: str, page_name: str = "", scaffold_id: str = "") -> str:
    """Readable widget-tree summary of a page, assembled from the local cache.

    Args:
        project_id: The FlutterFlow project ID
        page_name: Page name, case-insensitive (e.g. 'Home'). Provide either page_name or scaffold_id.
        scaffold_id: Scaffold ID (e.g. 'Scaffold_tydsj8ql')
    """
    if not page_name and not scaffold_id:
        return _error("Provide either page_name or scaffold_id.")
    store = _get_store()
    try:
        meta = store.meta(project_id)
        if meta is None:
            return _no_cache(project_id)
        page_key = find_page(store, project_id, page_name or None, scaffold_id or None)
        if page_key is None:
            return _page_not_found(store, project_id, page_name or scaffold_id)
        summary = await _summarizer(store).summarize_page(project_id, page_key)
    except _TOOL_ERRORS as e:
        return _error(e)
    return format_page_summary(summary) + cache_age_footer(meta)


@mcp.tool()
async def get_component_summary(
    project_id: str, component_name: str = "", component_id: str = ""
) -> str:
    """Readable widget-tree summary of a reusable component, assembled from the local cache.

    Args:
        project_id: The FlutterFlow project ID
        component_name: Component name, case-insensitive. Provide either component_name or component_id.
        component_id: Component ID (e.g. 'Container_ur4ml9qw')
    """
    if not component_name and not component_id:
        return _error("Provide either component_name or component_id.")
    store = _get_store()
    try:
        meta = store.meta(project_id)
        if meta is None:
            return _no_cache(project_id)
        component_key = find_component(store, project_id, component_name or None, component_id or None)
        if component_key is None:
            return _component_not_found(store, project_id, component_name or component_id)
        summary = await _summarizer(store).summarize_component(project_id, component_key)
    except _TOOL_ERRORS as e:
        return _error(e)
    return format_component_summary(summary) + cache_age_footer(meta)


@mcp.tool()
def find_component_usages(project_id: str, component_name: str = "", component_id: str = "") -> str:
    """Find every page and component in the cache that uses a component, with the parameters passed.

    Only cached widget node files are scanned; run sync_project first.

    Args:
        project_id: The FlutterFlow project ID
        component_name: Component name, case-insensitive. Provide either component_name or component_id.
        component_id: Component ID (e.g. 'Container_ur4ml9qw')
    """
    if not component_name and not component_id:
        return _error("Provide either component_name or component_id.")
    store = _get_store()
    try:
        meta = store.meta(project_id)
        if meta is None:
            return _no_cache(project_id)
        component_key = find_component(store, project_id, component_name or None, component_id or None)
        if component_key is None:
            return _component_not_found(store, project_id, component_name or component_id)
        container_id = component_key.removeprefix(COMPONENT_PREFIX)
        name = document_name(store.read(project_id, component_key)) or container_id
        usages = scan_component_usages(store, project_id, container_id)
    except _TOOL_ERRORS as e:
        return _error(e)
    return format_component_usages(name, container_id, usages) + cache_age_footer(meta)


@mcp.tool()
def find_page_navigations(project_id: str, page_name: str = "", scaffold_id: str = "") -> str:
    """Find every cached action that navigates to a page, including disabled ones.

    Only cached action files are scanned; run sync_project first.

    Args:
        project_id: The FlutterFlow project ID
        page_name: Page name, case-insensitive. Provide either page_name or scaffold_id.
        scaffold_id: Scaffold ID (e.g. 'Scaffold_tydsj8ql')
    """
    if not page_name and not scaffold_id:
        return _error("Provide either page_name or scaffold_id.")
    store = _get_store()
    try:
        meta = store.meta(project_id)
        if meta is None:
            return _no_cache(project_id)
        page_key = find_page(store, project_id, page_name or None, scaffold_id or None)
        if page_key is None:
            return _page_not_found(store, project_id, page_name or scaffold_id)
        page_id = page_key.removeprefix(PAGE_PREFIX)
        name = document_name(store.read(project_id, page_key)) or page_id
        refs = scan_page_navigations(store, project_id, page_id)
    except _TOOL_ERRORS as e:
        return _error(e)
    return format_page_navigations(name, page_id, refs) + cache_age_footer(meta)


@mcp.tool()
def search_project_files(project_id: str, query: str, mode: str = "contains") -> str:
    """Search cached file keys.

    Args:
        project_id: The FlutterFlow project ID
        query: Text or pattern to match against file keys
        mode: 'prefix', 'contains' (case-insensitive), or 'regex' (case-insensitive)
    """
    store = _get_store()
    try:
        meta = store.meta(project_id)
        if meta is None:
            return _no_cache(project_id)
        matches = search_keys(store.list_keys(project_id), query, mode)
    except ValueError as e:
        return _error(e)
    except _TOOL_ERRORS as e:
        return _error(e)

    if not matches:
        return f'No files matching "{query}" (mode: {mode}).' + cache_age_footer(meta)
    shown = matches[:MAX_SEARCH_RESULTS]
    if len(matches) > len(shown):
        header = f'Found {len(matches)} files matching "{query}" (showing first {len(shown)}):'
    else:
        header = f'Found {len(matches)} files matching "{query}":'
    return "\n".join([header, *(f"- {k}" for k in shown)]) + cache_age_footer(meta)


@mcp.tool()
async def get_page_by_name(project_id: str, page_name: str) -> str:
    """Raw YAML of a page looked up by its name (case-insensitive).

    Reads the cache first; with a token configured, unknown names trigger a
    page index rebuild from the API.

    Args:
        project_id: The FlutterFlow project ID
        page_name: Page name (e.g. 'Home')
    """
    store = _get_store()
    try:
        found = await page_yaml_by_name(
            store, project_id, page_name, _optional_client(), batch_size=_get_settings().batch_size
        )
        if found is None:
            return _page_not_found(store, project_id, page_name)
        meta = store.meta(project_id)
    except _TOOL_ERRORS as e:
        return _error(e)
    page, content = found
    header = f"# {page.name} ({page.scaffold_id}) — folder: {page.folder}\n# File key: {page.file_key}\n"
    return header + content + cache_age_footer(meta)


@mcp.tool()
async def get_project_yaml(project_id: str, file_name: str = "") -> str:
    """Download YAML straight from the API, bypassing the cache.

    Args:
        project_id: The FlutterFlow project ID
        file_name: One file key (e.g. 'app-details'); empty downloads the whole project
    """
    try:
        files = await fetch_project_yaml(_get_client(), project_id, file_name or None)
    except _TOOL_ERRORS as e:
        return _error(e)
    return json.dumps({"project_id": project_id, "count": len(files), "files": files}, indent=2)


@mcp.tool()
async def list_projects(project_type: str = "") -> str:
    """List the projects the API token can access.

    Args:
        project_type: Optional project type filter passed to the API
    """
    try:
        result = await _get_client().list_projects(project_type or None)
    except _TOOL_ERRORS as e:
        return _error(e)
    return (
        json.dumps(result, indent=2, default=str)
        + "\n\nTip: projects shared with you may not be listed; any project ID you can open still works."
    )


@mcp.tool()
async def list_project_files(project_id: str) -> str:
    """List every file key of a project as reported by the API.

    Args:
        project_id: The FlutterFlow project ID
    """
    try:
        files = await _get_client().list_files(project_id)
    except _TOOL_ERRORS as e:
        return _error(e)
    return json.dumps({"project_id": project_id, "count": len(files), "files": files}, indent=2)


@mcp.tool()
def get_cached_file(project_id: str, file_key: str) -> str:
    """Raw YAML of one cached project file.

    Args:
        project_id: The FlutterFlow project ID
        file_key: File key without extension (e.g. 'folders', 'page/id-Scaffold_abc')
    """
    store = _get_store()
    try:
        content = store.read(project_id, file_key)
        meta = store.meta(project_id)
    except StorageError as e:
        return _error(e)
    if content is None:
        return _error(f"{file_key} is not cached for project {project_id}")
    return content + cache_age_footer(meta)


@mcp.tool()
def list_cached_files(project_id: str, prefix: str = "") -> str:
    """List cached file keys for a project.

    Args:
        project_id: The FlutterFlow project ID
        prefix: Only return keys starting with this prefix (e.g. 'page/')
    """
    store = _get_store()
    try:
        keys = store.list_keys(project_id, prefix or None)
        meta = store.meta(project_id)
    except StorageError as e:
        return _error(e)
    return json.dumps(
        {
            "project_id": project_id,
            "count": len(keys),
            "keys": keys,
            "last_synced_at": meta.last_synced_at.isoformat() if meta else None,
        },
        indent=2,
    )


@mcp.tool()
async def validate_yaml(project_id: str, file_key: str, content: str) -> str:
    """Validate YAML before pushing it. Always call this before update_project_yaml.

    Validation catches syntax and schema errors, not semantic mistakes.

    Args:
        project_id: The FlutterFlow project ID
        file_key: The YAML file key (e.g. 'app-details', 'page/id-xxx')
        content: The YAML content as a normal multi-line string
    """
    try:
        result = await validate_file(_get_client(), project_id, file_key, content)
    except _TOOL_ERRORS as e:
        return _error(e)

    text = result.model_dump_json(indent=2)
    if not result.valid:
        widget_type = _node_type(file_key)
        if widget_type:
            text += (
                f"\n\nHint: compare with an existing {widget_type} node via "
                "get_cached_file to check field names."
            )
        else:
            text += "\n\nHint: compare with the cached version via get_cached_file to check field names."
    return text


@mcp.tool()
async def update_project_yaml(project_id: str, file_key_to_content: dict[str, str]) -> str:
    """Push YAML changes to a project. Call validate_yaml first.

    Pushed files are also written to the local cache of a synced project.

    Args:
        project_id: The FlutterFlow project ID
        file_key_to_content: Map of file keys to YAML content
    """
    if not file_key_to_content:
        return _error("file_key_to_content is empty")
    try:
        result = await push_files(_get_store(), _get_client(), project_id, file_key_to_content)
    except _TOOL_ERRORS as e:
        return _error(e)
    return json.dumps(
        {"status": "ok", "files": sorted(file_key_to_content), "result": result},
        indent=2,
        default=str,
    )


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


@mcp.prompt()
def inspect_page(project_id: str, page_name: str) -> str:
    """Walk an agent through understanding a single page before editing it."""
    return "\n".join(
        [
            f"# Inspect page '{page_name}' in project {project_id}",
            "",
            f"1. Call `sync_project(project_id='{project_id}')` if the project is not cached yet.",
            f"2. Call `get_page_summary(project_id='{project_id}', page_name='{page_name}')`.",
            "3. For any widget of interest, read its node file with `get_cached_file`,",
            "   e.g. `<page key>/page-widget-tree-outline/node/id-<WidgetKey>`.",
            "4. For component instances shown as `[Name] (Container_x)`, call",
            "   `get_component_summary` with that component ID.",
            "5. Before pushing edits, call `validate_yaml`, then `update_project_yaml`.",
            "",
            "Nodes marked `[error: ...]` could not be loaded; re-run `sync_project` with force=true.",
        ]
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the MCP server on stdio."""
    # stdout carries the protocol; logs go to stderr.
    logging.basicConfig(
        level=logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
