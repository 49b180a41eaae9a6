"""Build a scaffoldId -> folder name mapping from the ``folders`` document.

The document has two sections::

    rootFolders:                 # nested tree of {key, name, children}
      - key: folderA
        name: Authentication
        children: [...]
    widgetClassKeyToFolderKey:   # flat Scaffold_xxx: folderKey
      Scaffold_login: folderA

Folder names are collected from anywhere in the document, so the mapping
survives changes to the nesting shape.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import yaml

logger = logging.getLogger(__name__)

ASSIGNMENT_SECTION = "widgetClassKeyToFolderKey"
PAGE_ID_PREFIX = "Scaffold_"
UNMAPPED = "(unmapped)"


@dataclass
class _Arena:
    """Flat list of every mapping in a parsed document, addressed by index."""

    nodes: list[dict] = field(default_factory=list)

    @classmethod
    def build(cls, doc: Any) -> _Arena:
        arena = cls()
        stack: list[Any] = [doc]
        while stack:
            value = stack.pop()
            if isinstance(value, dict):
                arena.nodes.append(value)
                # reversed keeps document order when popping
                stack.extend(reversed(list(value.values())))
            elif isinstance(value, list):
                stack.extend(reversed(value))
        return arena


def _folder_names(arena: _Arena) -> dict[str, str]:
    names: dict[str, str] = {}
    for node in arena.nodes:
        key = node.get("key")
        name = node.get("name")
        if key is None or name is None or isinstance(key, (dict, list)) or isinstance(name, (dict, list)):
            continue
        names.setdefault(str(key), str(name).strip())
    return names


def map_folders(folders_text: str) -> dict[str, str]:
    """Return ``{scaffoldId: folderName}``; unresolved folder keys map to themselves."""
    if not folders_text or not folders_text.strip():
        return {}
    try:
        doc = yaml.safe_load(folders_text)
    except yaml.YAMLError as e:
        logger.warning("Unparseable folders document: %s", e)
        return {}
    if not isinstance(doc, dict):
        return {}

    names = _folder_names(_Arena.build(doc))

    assignments = doc.get(ASSIGNMENT_SECTION)
    if not isinstance(assignments, dict):
        return {}

    result: dict[str, str] = {}
    for identifier, folder_key in assignments.items():
        if not isinstance(identifier, str) or not identifier.startswith(PAGE_ID_PREFIX):
            continue
        if folder_key is None or isinstance(folder_key, (dict, list)):
            continue
        folder_key = str(folder_key)
        result[identifier] = names.get(folder_key) or folder_key
    return result


def folder_for(folder_map: dict[str, str], scaffold_id: str) -> str:
    return folder_map.get(scaffold_id) or UNMAPPED
