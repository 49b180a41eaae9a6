"""CacheStore: per-project YAML file cache on local disk.

Layout::

    <root>/<projectId>/_meta.json
    <root>/<projectId>/<fileKey>.yaml      e.g. page/id-Scaffold_abc.yaml

Reads never modify storage. A cache miss is ``None``, not an exception.
"""

from __future__ import annotations

import shutil
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from ffctx.core.schema import CacheMeta
from ffctx.utils.paths import META_FILE, check_file_key, check_project_id, key_to_relpath, relpath_to_key


class StorageError(Exception):
    """Raised on fatal cache I/O failures or invalid cache keys."""


class CacheStore:
    """Read/write access to cached project files under an explicit root."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).expanduser().resolve()

    def project_dir(self, project_id: str) -> Path:
        try:
            return self.root / check_project_id(project_id)
        except ValueError as e:
            raise StorageError(str(e)) from e

    def _path(self, project_id: str, file_key: str) -> Path:
        try:
            rel = key_to_relpath(file_key)
        except ValueError as e:
            raise StorageError(f"{e} (project {project_id})") from e
        return self.project_dir(project_id) / rel

    # -- Entries --

    def read(self, project_id: str, file_key: str) -> str | None:
        path = self._path(project_id, file_key)
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {file_key} for project {project_id}: {e}") from e

    def write(self, project_id: str, file_key: str, content: str) -> None:
        path = self._path(project_id, file_key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot write {file_key} for project {project_id}: {e}") from e

    def write_bulk(self, project_id: str, entries: dict[str, str]) -> int:
        """Write many entries; returns the number written.

        Writes are not rolled back: if one fails, the entries before it stay
        on disk and the StorageError propagates.
        """
        count = 0
        for file_key, content in entries.items():
            self.write(project_id, file_key, content)
            count += 1
        return count

    def invalidate(self, project_id: str, file_key: str | None = None) -> bool:
        """Remove one entry, or the whole project cache when no key is given.

        Returns False if there was nothing to remove.
        """
        if file_key is None:
            pdir = self.project_dir(project_id)
            if not pdir.is_dir():
                return False
            try:
                shutil.rmtree(pdir)
            except OSError as e:
                raise StorageError(f"Cannot clear cache for project {project_id}: {e}") from e
            return True

        path = self._path(project_id, file_key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Cannot remove {file_key} for project {project_id}: {e}") from e
        return True

    def list_keys(self, project_id: str, prefix: str | None = None) -> list[str]:
        """Return all cached file keys for a project, sorted, optionally prefix-filtered.

        Only the directory holding the prefix is walked.
        """
        pdir = self.project_dir(project_id)
        base = pdir
        if prefix and "/" in prefix:
            try:
                base = pdir / check_file_key(prefix.rsplit("/", 1)[0])
            except ValueError as e:
                raise StorageError(f"Invalid key prefix {prefix!r} (project {project_id})") from e
        if not base.is_dir():
            return []
        keys = []
        for path in base.rglob("*"):
            if not path.is_file():
                continue
            key = relpath_to_key(path.relative_to(pdir))
            if key is None:
                continue
            if prefix and not key.startswith(prefix):
                continue
            keys.append(key)
        return sorted(keys)

    # -- Metadata --

    def meta(self, project_id: str) -> CacheMeta | None:
        """Return sync metadata, or None if the project was never synced."""
        path = self.project_dir(project_id) / META_FILE
        if not path.is_file():
            return None
        try:
            return CacheMeta.model_validate_json(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise StorageError(f"Cannot read cache metadata for project {project_id}: {e}") from e
        except ValidationError as e:
            raise StorageError(f"Corrupt cache metadata for project {project_id}: {e}") from e

    def write_meta(self, project_id: str, meta: CacheMeta) -> None:
        pdir = self.project_dir(project_id)
        try:
            pdir.mkdir(parents=True, exist_ok=True)
            (pdir / META_FILE).write_text(meta.model_dump_json(indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot write cache metadata for project {project_id}: {e}") from e

    def projects(self) -> list[str]:
        """Project IDs that have a cache directory."""
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir())


def get_cached_file(store: CacheStore, project_id: str, file_key: str) -> str | None:
    return store.read(project_id, file_key)


def list_cached_keys(store: CacheStore, project_id: str, prefix: str | None = None) -> list[str]:
    return store.list_keys(project_id, prefix)


# -- Staleness --


def cache_age_minutes(meta: CacheMeta, now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    synced = meta.last_synced_at
    if synced.tzinfo is None:
        synced = synced.replace(tzinfo=timezone.utc)
    return max(0, int((now - synced).total_seconds() // 60))


def cache_age_footer(meta: CacheMeta | None, now: datetime | None = None) -> str:
    """Footer appended to cache-backed tool output."""
    if meta is None:
        return ""
    minutes = cache_age_minutes(meta, now)
    if minutes < 1:
        age = "less than a minute"
    elif minutes == 1:
        age = "1 minute"
    else:
        age = f"{minutes} minutes"
    return f"\n\n---\nCache is {age} old (synced {meta.last_synced_at.isoformat()}). Run sync_project with force=true to refresh."
