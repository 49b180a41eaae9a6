"""FlutterFlow project API client over httpx.

Endpoints (base ``https://api.flutterflow.io/v2``):

- ``POST /l/listProjects``
- ``GET  /listPartitionedFileNames?projectId=``
- ``GET  /projectYamls?projectId=&fileName=``   (base64 zip envelope)
- ``POST /validateProjectYaml``
- ``POST /updateProjectByYaml``
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ffctx.core.schema import ValidationResult
from ffctx.utils.config import TOKEN_ENV, Settings

logger = logging.getLogger(__name__)

FF_API_BASE = "https://api.flutterflow.io/v2"
DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)


class FlutterFlowAPIError(Exception):
    """Raised when the API returns a non-2xx status or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _file_names(payload: Any) -> list[str]:
    value = payload.get("value") if isinstance(payload, dict) else None
    if not isinstance(value, dict):
        return []
    names = value.get("file_names") or value.get("fileNames") or []
    return [str(n) for n in names]


def _validation_result(payload: Any) -> ValidationResult:
    data = payload.get("value", payload) if isinstance(payload, dict) else {}
    if not isinstance(data, dict):
        data = {}
    errors = []
    for err in data.get("errors") or []:
        if isinstance(err, dict):
            errors.append(str(err.get("message") or err))
        else:
            errors.append(str(err))
    return ValidationResult(valid=bool(data.get("valid", not errors)), errors=errors)


class FlutterFlowClient:
    """Async client for the FlutterFlow project YAML API."""

    def __init__(
        self,
        token: str,
        base_url: str = FF_API_BASE,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> FlutterFlowClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, str] | None = None,
        body: Any = None,
    ) -> Any:
        try:
            resp = await self._client.request(method, endpoint, params=params, json=body)
        except httpx.HTTPError as e:
            raise FlutterFlowAPIError(f"FlutterFlow API request to {endpoint} failed: {e}") from e
        if resp.is_error:
            raise FlutterFlowAPIError(
                f"FlutterFlow API error {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )
        return resp.json()

    async def list_projects(self, project_type: str | None = None) -> Any:
        return await self._request(
            "POST",
            "/l/listProjects",
            body={"project_type": project_type, "deserialize_response": False},
        )

    async def list_files(self, project_id: str) -> list[str]:
        payload = await self._request(
            "GET", "/listPartitionedFileNames", params={"projectId": project_id}
        )
        return _file_names(payload)

    async def get_files(self, project_id: str, file_key: str | None = None) -> Any:
        params = {"projectId": project_id}
        if file_key:
            params["fileName"] = file_key
        return await self._request("GET", "/projectYamls", params=params)

    async def validate(self, project_id: str, file_key: str, content: str) -> ValidationResult:
        payload = await self._request(
            "POST",
            "/validateProjectYaml",
            body={"projectId": project_id, "fileKey": file_key, "fileContent": content},
        )
        return _validation_result(payload)

    async def update(self, project_id: str, file_key_to_content: dict[str, str]) -> Any:
        logger.info("Pushing %d file(s) to project %s", len(file_key_to_content), project_id)
        return await self._request(
            "POST",
            "/updateProjectByYaml",
            body={"projectId": project_id, "fileKeyToContent": file_key_to_content},
        )


def create_client(settings: Settings) -> FlutterFlowClient:
    if not settings.api_token:
        raise FlutterFlowAPIError(
            f"{TOKEN_ENV} environment variable is required. "
            "Get your token from FlutterFlow > Account Settings > API Token."
        )
    return FlutterFlowClient(settings.api_token)
