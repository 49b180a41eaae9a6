"""MCP fixtures: point the server module at a temp cache and an in-memory source."""

from __future__ import annotations

from pathlib import Path

import pytest

from ffctx.core.cache import CacheStore
from ffctx.mcp.server import set_client, set_settings, set_store
from ffctx.utils.config import Settings
from tests.conftest import FakeSource

EXPECTED_TOOL_COUNT = 14
EXPECTED_RESOURCE_COUNT = 1
EXPECTED_PROMPT_COUNT = 1


@pytest.fixture
def server_store(tmp_path: Path) -> CacheStore:
    """Empty cache wired into the server, with a FakeSource as API client."""
    settings = Settings(cache_dir=tmp_path / "cache", batch_size=2)
    s = CacheStore(settings.cache_dir)
    set_settings(settings)
    set_store(s)
    set_client(FakeSource())
    yield s
    set_settings(None)
    set_store(None)
    set_client(None)
