"""Assemble page and component summaries from cached (or fetched) YAML.

A page summary combines:

- the folder name from the ``folders`` document,
- name, params and state fields from ``page/id-Scaffold_xxx``,
- the widget skeleton from ``.../page-widget-tree-outline``,
- per-node detail and triggers from ``.../node/id-<key>`` and its
  ``trigger_actions`` sub-files.

Node files are loaded in fixed-size batches. A node whose file cannot be
loaded is kept in the tree with ``error`` set; it never aborts the summary.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

import yaml

from ffctx.core.actions import summarize_triggers
from ffctx.core.archive import DecodeError
from ffctx.core.cache import CacheStore, StorageError
from ffctx.core.fetch import DocumentLoader, FetchError, fetch_in_batches
from ffctx.core.folders import folder_for, map_folders
from ffctx.core.nodes import document_name, extract_node_info
from ffctx.core.outline import iter_outline, walk_outline
from ffctx.core.schema import (
    ComponentMeta,
    ComponentSummary,
    OutlineNode,
    PageMeta,
    PageSummary,
    ParamInfo,
    StateFieldInfo,
    SummaryNode,
)
from ffctx.core.values import infer_type, resolve_data_type
from ffctx.sources.base import ProjectSource
from ffctx.utils.config import DEFAULT_BATCH_SIZE

logger = logging.getLogger(__name__)

FOLDERS_KEY = "folders"
PAGE_PREFIX = "page/id-"
COMPONENT_PREFIX = "component/id-"
PAGE_OUTLINE = "page-widget-tree-outline"
COMPONENT_OUTLINE = "component-widget-tree-outline"

_PAGE_KEY_RE = re.compile(r"^page/id-(Scaffold_\w+)$")
_COMPONENT_KEY_RE = re.compile(r"^component/id-(Container_\w+)$")


class PageNotFoundError(Exception):
    """Raised when a page/component document or its outline is not available."""


# -- Lookup --


def page_file_key(scaffold_id: str) -> str:
    return f"{PAGE_PREFIX}{scaffold_id}"


def component_file_key(container_id: str) -> str:
    return f"{COMPONENT_PREFIX}{container_id}"


def _top_level_keys(store: CacheStore, project_id: str, prefix: str, pattern: re.Pattern) -> list[str]:
    return [k for k in store.list_keys(project_id, prefix) if pattern.match(k)]


def _find(
    store: CacheStore,
    project_id: str,
    prefix: str,
    pattern: re.Pattern,
    name: str | None,
    ident: str | None,
) -> str | None:
    if ident:
        key = prefix + ident
        if store.read(project_id, key) is not None:
            return key
    if not name:
        return None
    wanted = name.lower()
    for key in _top_level_keys(store, project_id, prefix, pattern):
        if document_name(store.read(project_id, key)).lower() == wanted:
            return key
    return None


def find_page(
    store: CacheStore, project_id: str, page_name: str | None = None, scaffold_id: str | None = None
) -> str | None:
    """Return the cached page file key for a name (case-insensitive) or scaffold ID."""
    return _find(store, project_id, PAGE_PREFIX, _PAGE_KEY_RE, page_name, scaffold_id)


def find_component(
    store: CacheStore, project_id: str, component_name: str | None = None, component_id: str | None = None
) -> str | None:
    return _find(store, project_id, COMPONENT_PREFIX, _COMPONENT_KEY_RE, component_name, component_id)


def cached_page_names(store: CacheStore, project_id: str) -> list[str]:
    names = (document_name(store.read(project_id, k)) for k in _top_level_keys(store, project_id, PAGE_PREFIX, _PAGE_KEY_RE))
    return [n for n in names if n]


def cached_component_names(store: CacheStore, project_id: str) -> list[str]:
    names = (
        document_name(store.read(project_id, k))
        for k in _top_level_keys(store, project_id, COMPONENT_PREFIX, _COMPONENT_KEY_RE)
    )
    return [n for n in names if n]


# -- Metadata --


def _parse(content: str | None, what: str) -> dict:
    if not content:
        return {}
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.warning("Unparseable %s: %s", what, e)
        return {}
    return doc if isinstance(doc, dict) else {}


def _identifier_name(obj: Any) -> str:
    ident = obj.get("identifier") if isinstance(obj, dict) else None
    name = ident.get("name") if isinstance(ident, dict) else None
    return str(name) if name else "unknown"


def extract_params(doc: dict) -> list[ParamInfo]:
    raw = doc.get("params")
    if not isinstance(raw, dict):
        return []
    params = []
    for val in raw.values():
        if not isinstance(val, dict):
            continue
        default = val.get("defaultValue")
        serialized = default.get("serializedValue") if isinstance(default, dict) else None
        params.append(
            ParamInfo(
                name=_identifier_name(val),
                data_type=resolve_data_type(val.get("dataType") or {}),
                default_value=str(serialized) if serialized is not None else None,
            )
        )
    return params


def extract_state_fields(doc: dict) -> list[StateFieldInfo]:
    class_model = doc.get("classModel")
    raw = class_model.get("stateFields") if isinstance(class_model, dict) else None
    if not isinstance(raw, list):
        return []
    fields = []
    for entry in raw:
        param = entry.get("parameter") if isinstance(entry, dict) else None
        if not isinstance(param, dict):
            continue
        defaults = entry.get("serializedDefaultValue")
        default = defaults[0] if isinstance(defaults, list) and defaults else None
        fields.append(
            StateFieldInfo(
                name=_identifier_name(param),
                data_type=resolve_data_type(param.get("dataType") or {}),
                default_value=str(default) if default is not None else None,
            )
        )
    return fields


def page_meta_from_doc(doc: dict, scaffold_id: str, folder: str) -> PageMeta:
    return PageMeta(
        page_name=str(doc.get("name") or scaffold_id),
        scaffold_id=scaffold_id,
        folder=folder,
        params=extract_params(doc),
        state_fields=extract_state_fields(doc),
    )


def component_meta_from_doc(doc: dict, container_id: str) -> ComponentMeta:
    return ComponentMeta(
        component_name=str(doc.get("name") or container_id),
        container_id=container_id,
        description=str(doc.get("description") or ""),
        params=extract_params(doc),
    )


def _last_id(file_key: str) -> str:
    last = file_key.rsplit("/", 1)[-1]
    return last[3:] if last.startswith("id-") else last


# -- Assembly --


class PageSummarizer:
    """Build PageSummary / ComponentSummary trees for one project at a time."""

    def __init__(
        self,
        store: CacheStore,
        client: ProjectSource | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retries: int = 0,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.client = client
        self.batch_size = batch_size
        self.retries = retries

    def _loader(self, project_id: str) -> DocumentLoader:
        return DocumentLoader(self.store, project_id, self.client, self.retries)

    async def _folder_map(self, loader: DocumentLoader) -> dict[str, str]:
        try:
            content = await loader.load(FOLDERS_KEY)
        except (FetchError, DecodeError) as e:
            logger.warning("Folder lookup unavailable for project %s: %s", loader.project_id, e)
            return {}
        return map_folders(content or "")

    async def _require(self, loader: DocumentLoader, file_key: str) -> str:
        content = await loader.load(file_key)
        if content is None:
            raise PageNotFoundError(f"{file_key} not found for project {loader.project_id}")
        return content

    async def summarize_page(self, project_id: str, page_key: str) -> PageSummary:
        loader = self._loader(project_id)
        match = _PAGE_KEY_RE.match(page_key)
        scaffold_id = match.group(1) if match else _last_id(page_key)

        folder_map, page_content = await asyncio.gather(
            self._folder_map(loader), self._require(loader, page_key)
        )
        meta = page_meta_from_doc(
            _parse(page_content, page_key), scaffold_id, folder_for(folder_map, scaffold_id)
        )

        outline_key = f"{page_key}/{PAGE_OUTLINE}"
        outline = walk_outline(await self._require(loader, outline_key))
        tree = await self.summarize_outline(loader, outline_key, outline)
        return PageSummary(meta=meta, tree=tree)

    async def summarize_component(self, project_id: str, component_key: str) -> ComponentSummary:
        loader = self._loader(project_id)
        match = _COMPONENT_KEY_RE.match(component_key)
        container_id = match.group(1) if match else _last_id(component_key)

        content = await self._require(loader, component_key)
        meta = component_meta_from_doc(_parse(content, component_key), container_id)

        outline_key = f"{component_key}/{COMPONENT_OUTLINE}"
        outline = walk_outline(await self._require(loader, outline_key))
        tree = await self.summarize_outline(loader, outline_key, outline)
        return ComponentSummary(meta=meta, tree=tree)

    async def summarize_outline(
        self, loader: DocumentLoader, outline_key: str, outline: OutlineNode
    ) -> SummaryNode:
        """Load every node file in batches, then build the SummaryNode tree."""
        nodes = list(iter_outline(outline))
        file_keys = [f"{outline_key}/node/id-{n.key}" for n in nodes]
        results = await fetch_in_batches(file_keys, self.batch_size, loader.load)
        loaded = {id(node): (key, result) for node, key, result in zip(nodes, file_keys, results)}
        return self._build(loader.project_id, outline, loaded)

    def _build(self, project_id: str, node: OutlineNode, loaded: dict) -> SummaryNode:
        file_key, result = loaded[id(node)]
        children = [self._build(project_id, child, loaded) for child in node.children]

        if isinstance(result, StorageError) or not isinstance(result, (str, type(None), Exception)):
            raise result
        if isinstance(result, Exception):
            logger.warning("Node %s degraded in project %s: %s", node.key, project_id, result)
            return SummaryNode(
                key=node.key,
                type=infer_type(node.key),
                slot=node.slot,
                error=str(result) or type(result).__name__,
                children=children,
            )

        try:
            doc = yaml.safe_load(result) if result else None
        except yaml.YAMLError as e:
            return SummaryNode(
                key=node.key,
                type=infer_type(node.key),
                slot=node.slot,
                error=f"unparseable node file: {e}",
                children=children,
            )

        info = extract_node_info(doc, node.key)
        component_ref = None
        if info.component_id:
            component_ref = document_name(
                self.store.read(project_id, component_file_key(info.component_id))
            ) or None

        return SummaryNode(
            key=node.key,
            type=info.type,
            name=info.name,
            slot=node.slot,
            detail=info.detail,
            component_ref=component_ref,
            component_id=info.component_id,
            triggers=summarize_triggers(self.store, project_id, file_key),
            children=children,
        )


async def summarize_page(
    store: CacheStore,
    project_id: str,
    page_key: str,
    client: ProjectSource | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    retries: int = 0,
) -> PageSummary:
    summarizer = PageSummarizer(store, client, batch_size=batch_size, retries=retries)
    return await summarizer.summarize_page(project_id, page_key)
