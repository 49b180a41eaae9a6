"""Parse a widget-tree-outline document into an OutlineNode tree.

The outline has a ``node`` root. Every node may attach children through
named slots (``body``, ``appBar``, ...) and through an ordered ``children``
list. Each entry carries a ``key`` such as ``Button_uaqbabys``.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import yaml

from ffctx.core.schema import OutlineNode

# Named slots that can appear on a node alongside `children`, in render order.
SLOT_KEYS = (
    "body",
    "appBar",
    "title",
    "header",
    "collapsed",
    "expanded",
    "floatingActionButton",
    "drawer",
    "endDrawer",
    "bottomNavigationBar",
)

ROOT_SLOT = "root"
CHILDREN_SLOT = "children"
UNKNOWN_KEY = "unknown"


class StructureError(Exception):
    """Raised when an outline document has no keyed root node."""


def _key_of(raw: dict) -> str:
    key = raw.get("key")
    if key is None or key == "":
        return UNKNOWN_KEY
    return str(key)


def _parse_node(raw: Any, slot: str) -> OutlineNode:
    if not isinstance(raw, dict):
        return OutlineNode(key=UNKNOWN_KEY, slot=slot)

    children: list[OutlineNode] = []
    for name in SLOT_KEYS:
        child = raw.get(name)
        if isinstance(child, dict) and child.get("key"):
            children.append(_parse_node(child, name))

    raw_children = raw.get(CHILDREN_SLOT)
    if isinstance(raw_children, list):
        for child in raw_children:
            children.append(_parse_node(child, CHILDREN_SLOT))

    return OutlineNode(key=_key_of(raw), slot=slot, children=children)


def walk_outline(outline_text: str) -> OutlineNode:
    """Return the root OutlineNode (typically the Scaffold)."""
    try:
        doc = yaml.safe_load(outline_text or "")
    except yaml.YAMLError as e:
        raise StructureError(f"Invalid tree outline: {e}") from e

    root = doc.get("node") if isinstance(doc, dict) else None
    if not isinstance(root, dict) or not root.get("key"):
        raise StructureError("Invalid tree outline: missing root node")
    return _parse_node(root, ROOT_SLOT)


def iter_outline(node: OutlineNode) -> Iterator[OutlineNode]:
    """Yield nodes in pre-order (parent before children, children in order)."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))
