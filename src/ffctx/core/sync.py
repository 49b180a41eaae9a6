"""Project sync, page index, and validate/push passthroughs."""

from __future__ import annotations

import logging
import re
from typing import Any

from ffctx.core.archive import DecodeError, decode_archive, normalize_entries
from ffctx.core.cache import CacheStore
from ffctx.core.fetch import DocumentLoader, FetchError, fetch_in_batches, pick_entry
from ffctx.core.folders import folder_for, map_folders
from ffctx.core.nodes import document_name
from ffctx.core.schema import CacheMeta, PageInfo, SyncResult, ValidationResult
from ffctx.core.summary import FOLDERS_KEY, PAGE_PREFIX, find_page
from ffctx.sources.base import ProjectSource
from ffctx.utils.config import DEFAULT_BATCH_SIZE

logger = logging.getLogger(__name__)

_PAGE_KEY_RE = re.compile(r"^page/id-(Scaffold_\w+)$")

FETCH_FAILED = "(error - could not fetch)"
NO_NAME = "(unknown)"


def top_level_keys(file_keys: list[str]) -> list[str]:
    """Keys with at most two path segments, e.g. ``page/id-Scaffold_x``.

    Deeper sub-files (widget nodes, triggers) cannot be fetched one by one
    without thousands of requests; they arrive with the bulk archive.
    """
    return [k for k in file_keys if len(k.split("/")) <= 2]


def page_keys(file_keys: list[str]) -> list[str]:
    return [k for k in file_keys if _PAGE_KEY_RE.match(k)]


async def sync_project(
    store: CacheStore,
    client: ProjectSource,
    project_id: str,
    force: bool = False,
    batch_size: int = DEFAULT_BATCH_SIZE,
    retries: int = 0,
) -> SyncResult:
    """Download a project into the cache: one bulk archive, else batched top-level files."""
    if not force:
        existing = store.meta(project_id)
        if existing is not None:
            return SyncResult(
                status="already_cached",
                synced_files=existing.file_count or 0,
                method=existing.sync_method,
                cached_at=existing.last_synced_at,
                message="Project is already cached. Pass force=true to re-sync.",
            )

    try:
        envelope = await client.get_files(project_id)
        entries = normalize_entries(decode_archive(envelope))
    except Exception as e:
        logger.warning("Bulk fetch failed for project %s, falling back to batched: %s", project_id, e)
    else:
        synced = store.write_bulk(project_id, entries)
        meta = CacheMeta(file_count=synced, sync_method="bulk")
        store.write_meta(project_id, meta)
        return SyncResult(status="synced", synced_files=synced, method="bulk", cached_at=meta.last_synced_at)

    keys = top_level_keys(await client.list_files(project_id))
    if not keys:
        return SyncResult(
            status="error",
            message="No file keys returned by listPartitionedFileNames. Check the projectId.",
        )

    loader = DocumentLoader(store, project_id, client, retries)
    results = await fetch_in_batches(keys, batch_size, loader.fetch)

    synced = failed = 0
    for key, result in zip(keys, results):
        content = None if isinstance(result, BaseException) else pick_entry(result, key)
        if content is None:
            logger.warning("Could not fetch %s for project %s: %s", key, project_id, result)
            failed += 1
            continue
        store.write(project_id, key, content)
        synced += 1

    meta = CacheMeta(file_count=synced, sync_method="batched")
    store.write_meta(project_id, meta)
    return SyncResult(
        status="synced",
        synced_files=synced,
        failed=failed,
        method="batched",
        cached_at=meta.last_synced_at,
    )


async def list_pages(
    store: CacheStore,
    project_id: str,
    client: ProjectSource | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> list[PageInfo]:
    """Index every page with its name and folder, sorted by folder then name.

    Page documents are read from the cache when present and fetched
    otherwise. Without a client only cached pages are listed.
    """
    loader = DocumentLoader(store, project_id, client)
    if client is not None:
        keys = page_keys(await client.list_files(project_id))
    else:
        keys = page_keys(store.list_keys(project_id, PAGE_PREFIX))

    try:
        folders_text = await loader.load(FOLDERS_KEY)
    except (FetchError, DecodeError) as e:
        logger.warning("Folder lookup unavailable for project %s: %s", project_id, e)
        folders_text = None
    folder_map = map_folders(folders_text or "")

    results = await fetch_in_batches(keys, batch_size, loader.load)

    pages = []
    for key, result in zip(keys, results):
        scaffold_id = _PAGE_KEY_RE.match(key).group(1)
        if isinstance(result, BaseException) or result is None:
            name = FETCH_FAILED
        else:
            name = document_name(result) or NO_NAME
        pages.append(
            PageInfo(
                scaffold_id=scaffold_id,
                name=name,
                folder=folder_for(folder_map, scaffold_id),
                file_key=key,
            )
        )
    pages.sort(key=lambda p: (p.folder, p.name))
    return pages


async def validate_file(
    client: ProjectSource, project_id: str, file_key: str, content: str
) -> ValidationResult:
    """Remote validation; the result is passed through as-is."""
    return await client.validate(project_id, file_key, content)


async def push_files(
    store: CacheStore,
    client: ProjectSource,
    project_id: str,
    file_key_to_content: dict[str, str],
) -> Any:
    """Push YAML to the project, then record the pushed content in the cache."""
    result = await client.update(project_id, file_key_to_content)
    if store.meta(project_id) is not None:
        store.write_bulk(project_id, file_key_to_content)
    return result


async def page_yaml_by_name(
    store: CacheStore,
    project_id: str,
    page_name: str,
    client: ProjectSource | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> tuple[PageInfo, str] | None:
    """Raw page YAML for a page name (case-insensitive), with its index entry.

    The cache is tried first; on a miss with a client the page index is
    rebuilt, which caches every page document it fetches.
    """
    page_key = find_page(store, project_id, page_name)
    if page_key is None and client is not None:
        wanted = page_name.lower()
        for page in await list_pages(store, project_id, client, batch_size):
            if page.name.lower() == wanted:
                page_key = page.file_key
                break
    if page_key is None:
        return None
    content = store.read(project_id, page_key)
    if content is None:
        return None

    scaffold_id = _PAGE_KEY_RE.match(page_key).group(1)
    folder_map = map_folders(store.read(project_id, FOLDERS_KEY) or "")
    info = PageInfo(
        scaffold_id=scaffold_id,
        name=document_name(content) or NO_NAME,
        folder=folder_for(folder_map, scaffold_id),
        file_key=page_key,
    )
    return info, content


async def fetch_project_yaml(
    client: ProjectSource, project_id: str, file_key: str | None = None
) -> dict[str, str]:
    """Decoded YAML straight from the API, one file or the whole project; the cache is untouched."""
    return normalize_entries(decode_archive(await client.get_files(project_id, file_key)))
