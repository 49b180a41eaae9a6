"""Contract for the remote project API."""

from __future__ import annotations

from typing import Any, Protocol

from ffctx.core.schema import ValidationResult


class ProjectSource(Protocol):
    """Request/response access to a remote project's YAML files.

    ``get_files`` returns the raw archive envelope understood by
    :func:`ffctx.core.archive.decode_archive`.
    """

    async def list_projects(self, project_type: str | None = None) -> Any: ...

    async def list_files(self, project_id: str) -> list[str]: ...

    async def get_files(self, project_id: str, file_key: str | None = None) -> Any: ...

    async def validate(self, project_id: str, file_key: str, content: str) -> ValidationResult: ...

    async def update(self, project_id: str, file_key_to_content: dict[str, str]) -> Any: ...
