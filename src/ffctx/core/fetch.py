"""Cache-first document loading and the batch throttle used against the API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ffctx.core.archive import DecodeError, decode_archive, normalize_entries
from ffctx.core.cache import CacheStore, StorageError
from ffctx.sources.base import ProjectSource

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_RETRY_WAIT = 1.0
MAX_RETRY_WAIT = 30.0


class FetchError(Exception):
    """Raised when a document cannot be fetched from the remote API."""


async def fetch_in_batches(
    items: Sequence[T],
    batch_size: int,
    fn: Callable[[T], Awaitable[R]],
) -> list[R | BaseException]:
    """Run ``fn`` over items, ``batch_size`` at a time.

    Each batch settles completely before the next one starts. Results are
    positional: ``result[i]`` belongs to ``items[i]`` and is either the value
    or the exception that call raised.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    results: list[R | BaseException] = []
    for start in range(0, len(items), batch_size):
        batch = items[start : start + batch_size]
        results.extend(await asyncio.gather(*(fn(item) for item in batch), return_exceptions=True))
    return results


def pick_entry(entries: dict[str, str], file_key: str) -> str | None:
    """The entry for file_key; a single-entry archive counts as that file."""
    content = entries.get(file_key)
    if content is None and len(entries) == 1:
        content = next(iter(entries.values()))
    return content


class DocumentLoader:
    """Load project documents from cache, falling back to the remote API.

    Everything a fetch returns is written to the cache, so sub-files that
    arrive alongside the requested document are available afterwards.
    Without a client, a cache miss is simply ``None``.

    Failed requests are retried ``retries`` times with exponential backoff
    starting at ``retry_wait`` seconds.
    """

    def __init__(
        self,
        store: CacheStore,
        project_id: str,
        client: ProjectSource | None = None,
        retries: int = 0,
        retry_wait: float = DEFAULT_RETRY_WAIT,
    ) -> None:
        self.store = store
        self.project_id = project_id
        self.client = client
        self.retries = max(0, retries)
        self.retry_wait = retry_wait

    async def load(self, file_key: str) -> str | None:
        cached = self.store.read(self.project_id, file_key)
        if cached is not None or self.client is None:
            return cached
        entries = await self.fetch(file_key)
        content = pick_entry(entries, file_key)
        if content is None:
            return None
        if file_key not in entries:
            entries = {file_key: content}
        self.store.write_bulk(self.project_id, entries)
        return content

    async def fetch(self, file_key: str) -> dict[str, str]:
        """Fetch and decode one file from the API, bypassing the cache."""
        if self.client is None:
            raise FetchError(f"No API client configured to fetch {file_key}")
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.retry_wait, max=MAX_RETRY_WAIT),
            retry=retry_if_not_exception_type((DecodeError, StorageError)),
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    envelope = await self.client.get_files(self.project_id, file_key)
                    return normalize_entries(decode_archive(envelope))
        except (DecodeError, StorageError):
            raise
        except Exception as e:
            raise FetchError(f"Cannot fetch {file_key} for project {self.project_id}: {e}") from e
        return {}
