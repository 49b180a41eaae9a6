"""Cache-only cross references: component usages, page navigations, key search.

Nothing here talks to the API. Scans read the node and action files that a
sync left in the cache, so results are only as complete as the cache.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Literal

import yaml

from ffctx.core.cache import CacheStore
from ffctx.core.nodes import document_name
from ffctx.core.schema import ComponentUsage, NavigationRef, ParamPass
from ffctx.core.values import resolve_value

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 100
SEARCH_MODES = ("prefix", "contains", "regex")

_MAX_NAVIGATE_DEPTH = 12
_PARENT_PATTERNS = (
    ("page", re.compile(r"^page/id-(Scaffold_\w+)/")),
    ("component", re.compile(r"^component/id-(Container_\w+)/")),
)
_NODE_FILE_RE = re.compile(r"/node/id-([A-Z]\w*)$")
_ACTION_FILE_RE = re.compile(r"/node/id-(\w+)/trigger_actions/id-([^/]+)/action/id-[^/]+$")

ParentType = Literal["page", "component"]


def parse_parent(file_key: str) -> tuple[ParentType, str] | None:
    """``page/id-Scaffold_x/...`` -> ``("page", "Scaffold_x")``."""
    for parent_type, pattern in _PARENT_PATTERNS:
        match = pattern.match(file_key)
        if match:
            return parent_type, match.group(1)
    return None


def parent_name(store: CacheStore, project_id: str, parent_type: ParentType, parent_id: str) -> str:
    content = store.read(project_id, f"{parent_type}/id-{parent_id}")
    return document_name(content) or parent_id


def _load(store: CacheStore, project_id: str, file_key: str, needle: str) -> dict | None:
    content = store.read(project_id, file_key)
    # cheap substring test before parsing
    if not content or needle not in content:
        return None
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError:
        logger.debug("Skipping unparseable %s", file_key)
        return None
    return doc if isinstance(doc, dict) else None


# -- Component usages --


def resolve_param_value(param: Any) -> str:
    """Display text for a value passed into a component parameter."""
    if not isinstance(param, dict):
        return "[dynamic]"

    variable = param.get("variable")
    if isinstance(variable, dict):
        source = variable.get("source")
        if source == "INTERNATIONALIZATION":
            values = (variable.get("functionCall") or {}).get("values")
            if isinstance(values, list) and values and isinstance(values[0], dict):
                serialized = (values[0].get("inputValue") or {}).get("serializedValue")
                return f'"{serialized}" (i18n)' if serialized else "[i18n]"
            return "[i18n]"
        return f"[{source}]" if source else "[dynamic]"

    input_value = param.get("inputValue")
    if isinstance(input_value, (str, int, float)) and not isinstance(input_value, bool):
        return f'"{resolve_value(param)}"'
    if isinstance(input_value, dict):
        if "serializedValue" in input_value:
            return f'"{resolve_value(param)}"'
        if "themeColor" in input_value:
            return resolve_value(param)
    return "[dynamic]"


def _param_name(param: dict) -> str:
    ident = param.get("paramIdentifier")
    if isinstance(ident, dict):
        ident = ident.get("name") or ident.get("key")
    return str(ident) if ident else "unknown"


def find_component_usages(store: CacheStore, project_id: str, container_id: str) -> list[ComponentUsage]:
    """Every cached widget whose ``componentClassKeyRef`` points at ``container_id``."""
    usages = []
    for key in store.list_keys(project_id):
        node_match = _NODE_FILE_RE.search(key)
        if not node_match:
            continue
        doc = _load(store, project_id, key, container_id)
        if doc is None:
            continue
        ref = doc.get("componentClassKeyRef")
        if not isinstance(ref, dict) or ref.get("key") != container_id:
            continue
        parent = parse_parent(key)
        if parent is None:
            continue

        params = []
        values = doc.get("parameterValues")
        if isinstance(values, dict):
            for param in values.values():
                if isinstance(param, dict):
                    params.append(ParamPass(name=_param_name(param), value=resolve_param_value(param)))

        usages.append(
            ComponentUsage(
                parent_type=parent[0],
                parent_name=parent_name(store, project_id, *parent),
                parent_id=parent[1],
                widget_key=node_match.group(1),
                params=params,
            )
        )
    return usages


# -- Page navigations --


def find_navigate_action(
    obj: Any, scaffold_id: str, disabled: bool = False, depth: int = 0
) -> tuple[bool, bool, list[str]] | None:
    """Search an action document for a ``navigate`` to ``scaffold_id``.

    Returns ``(disabled, allow_back, passed_params)``; anything nested under
    ``disableAction`` counts as disabled.
    """
    if not isinstance(obj, dict) or depth > _MAX_NAVIGATE_DEPTH:
        return None

    if "disableAction" in obj:
        return find_navigate_action(obj["disableAction"], scaffold_id, True, depth + 1)

    nav = obj.get("navigate")
    if isinstance(nav, dict):
        ref = nav.get("pageNodeKeyRef")
        if isinstance(ref, dict) and ref.get("key") == scaffold_id:
            allow_back = nav.get("allowBack")
            passed = nav.get("passedParameters")
            params = [k for k in passed if k != "widgetClassNodeKeyRef"] if isinstance(passed, dict) else []
            return disabled, allow_back is not False, [str(p) for p in params]

    for value in obj.values():
        if isinstance(value, dict):
            found = find_navigate_action(value, scaffold_id, disabled, depth + 1)
            if found:
                return found
    return None


def find_page_navigations(store: CacheStore, project_id: str, scaffold_id: str) -> list[NavigationRef]:
    """Every cached action that navigates to ``scaffold_id``, one per widget trigger."""
    refs = []
    seen: set[tuple[str, str, str, bool]] = set()
    for key in store.list_keys(project_id):
        action_match = _ACTION_FILE_RE.search(key)
        if not action_match:
            continue
        parent = parse_parent(key)
        if parent is None:
            continue
        doc = _load(store, project_id, key, scaffold_id)
        if doc is None:
            continue
        found = find_navigate_action(doc, scaffold_id)
        if found is None:
            continue

        disabled, allow_back, passed = found
        widget_key, trigger = action_match.groups()
        dedupe = (parent[1], widget_key, trigger, disabled)
        if dedupe in seen:
            continue
        seen.add(dedupe)
        refs.append(
            NavigationRef(
                parent_type=parent[0],
                parent_name=parent_name(store, project_id, *parent),
                parent_id=parent[1],
                widget_key=widget_key,
                trigger=trigger,
                disabled=disabled,
                allow_back=allow_back,
                passed_params=passed,
            )
        )
    return refs


# -- Key search --


def search_keys(keys: list[str], query: str, mode: str = "contains") -> list[str]:
    """Filter file keys by ``prefix``, case-insensitive ``contains``, or case-insensitive ``regex``.

    Raises ValueError for an unknown mode or an invalid pattern.
    """
    if mode == "prefix":
        return [k for k in keys if k.startswith(query)]
    if mode == "contains":
        needle = query.lower()
        return [k for k in keys if needle in k.lower()]
    if mode == "regex":
        try:
            pattern = re.compile(query, re.IGNORECASE)
        except re.error as e:
            raise ValueError(f"Invalid regex {query!r}: {e}") from e
        return [k for k in keys if pattern.search(k)]
    raise ValueError(f"Unknown search mode {mode!r}; use one of: {', '.join(SEARCH_MODES)}")
