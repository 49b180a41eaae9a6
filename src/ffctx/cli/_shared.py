"""Shared CLI utilities to avoid circular imports."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import typer

from ffctx.core.cache import CacheStore
from ffctx.sources.base import ProjectSource
from ffctx.sources.flutterflow import FlutterFlowAPIError, create_client
from ffctx.utils.config import Settings, load_settings
from ffctx.utils.output import error

T = TypeVar("T")

FORMAT_OPTION = typer.Option(None, "--format", "-F", help="Output format: json or text")


def get_settings() -> Settings:
    return load_settings()


def get_store(settings: Settings | None = None) -> CacheStore:
    """Return a CacheStore rooted at the configured cache directory."""
    settings = settings or get_settings()
    return CacheStore(settings.cache_dir)


def get_client(settings: Settings | None = None, required: bool = True) -> ProjectSource | None:
    """Build the API client; exits when a token is required but missing."""
    try:
        return create_client(settings or get_settings())
    except FlutterFlowAPIError as e:
        if not required:
            return None
        error(str(e))
        raise typer.Exit(1)


def run(coro: Awaitable[T], client: ProjectSource | None = None) -> T:
    """Run a coroutine to completion, closing the client afterwards."""

    async def _main() -> T:
        try:
            return await coro
        finally:
            aclose = getattr(client, "aclose", None)
            if aclose is not None:
                await aclose()

    return asyncio.run(_main())
