"""Path utilities for the local YAML cache."""

from __future__ import annotations

import os
import re
from pathlib import Path


CACHE_DIR_NAME = ".ff-cache"
META_FILE = "_meta.json"
YAML_SUFFIX = ".yaml"

_PROJECT_ID_RE = re.compile(r"^[\w\-.]+$")


def default_cache_root() -> Path:
    """Return ``~/.cache/ffctx/.ff-cache``, honouring ``XDG_CACHE_HOME``."""
    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / "ffctx" / CACHE_DIR_NAME


def check_project_id(project_id: str) -> str:
    """Reject project IDs that are empty or could escape the cache root."""
    if not project_id or not _PROJECT_ID_RE.match(project_id) or project_id in (".", ".."):
        raise ValueError(f"Invalid project ID: {project_id!r}")
    return project_id


def check_file_key(file_key: str) -> str:
    """Reject file keys that are empty, absolute, or contain traversal segments.

    File keys are ``/``-separated, e.g. ``page/id-Scaffold_abc/page-widget-tree-outline``.
    """
    if not file_key or file_key.startswith("/") or "\\" in file_key:
        raise ValueError(f"Invalid file key: {file_key!r}")
    parts = file_key.split("/")
    if any(p in ("", ".", "..") for p in parts):
        raise ValueError(f"Invalid file key: {file_key!r}")
    return file_key


def key_to_relpath(file_key: str) -> Path:
    """``page/id-Scaffold_x`` -> ``page/id-Scaffold_x.yaml``"""
    parts = check_file_key(file_key).split("/")
    return Path(*parts[:-1], parts[-1] + YAML_SUFFIX)


def relpath_to_key(relpath: Path) -> str | None:
    """Inverse of :func:`key_to_relpath`; ``None`` for non-YAML files."""
    posix = relpath.as_posix()
    if not posix.endswith(YAML_SUFFIX):
        return None
    return posix[: -len(YAML_SUFFIX)]
