from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from todoapp.domain.common.errors import TransportError, api_error_for
from todoapp.domain.tasks.ports import TaskApi

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class HttpTaskApi(TaskApi):
    """
    TaskApi over HTTP. Unwraps the `{ok, data | error, request_id}` envelope:
    success yields `data`, an error envelope raises ApiError, anything that
    never produced an envelope raises TransportError.
    """

    def __init__(self, base_url_or_client: Union[str, httpx.AsyncClient], timeout: float = DEFAULT_TIMEOUT) -> None:
        if isinstance(base_url_or_client, httpx.AsyncClient):
            self._client = base_url_or_client
            self._owns_client = False
        else:
            self._client = httpx.AsyncClient(base_url=base_url_or_client, timeout=timeout)
            self._owns_client = True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def list_tasks(self, identifier: str) -> list[Dict[str, Any]]:
        return await self._request("GET", "/tasks", params={"owner": identifier})

    async def create_task(self, identifier: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/tasks", params={"owner": identifier}, json=dict(fields))

    async def update_task(self, task_id: str, identifier: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        body = {**fields, "identifier": identifier}
        return await self._request("PATCH", f"/tasks/{task_id}", json=body)

    async def delete_task(self, task_id: str, identifier: str) -> str:
        data = await self._request("DELETE", f"/tasks/{task_id}", params={"owner": identifier})
        return data["id"]

    async def health(self) -> Dict[str, Any]:
        return await self._request("GET", "/health")

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            logger.error("HTTP %s %s failed: %s", method, path, e)
            raise TransportError(f"Network error: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(f"Unexpected response from server (HTTP {response.status_code})") from e

        if not isinstance(payload, dict) or "ok" not in payload:
            raise TransportError(f"Unexpected response from server (HTTP {response.status_code})")

        if payload["ok"]:
            return payload.get("data")

        error = payload.get("error") or {}
        raise api_error_for(
            error.get("code") or "INTERNAL_SERVER_ERROR",
            error.get("message") or "An unknown error occurred",
            request_id=payload.get("request_id"),
            status=response.status_code,
        )
