from __future__ import annotations

from typing import Any

import httpx

from app.core.exceptions import EngineUnavailableError

PROCESS_INSTANCES_QUERY = (
    "{ ProcessInstances (where: {processId: {isNull: false} } ) "
    "{ id, processId, state, start, nodes { id }, variables } }"
)

PROCESS_INSTANCE_QUERY = (
    "query ProcessInstance($id: String) { ProcessInstances (where: { id: {equal: $id } } ) "
    "{ id, processId, state, start, nodes { id, nodeId, type, name, enter, exit }, variables } }"
)


class KogitoClient:
    """HTTP client for the workflow engine's management, execution and GraphQL APIs.

    Responses are returned as-is whatever their status; only transport
    failures (engine not listening, timeouts) raise.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            return await self.client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise EngineUnavailableError(f"Workflow engine unreachable at {url}: {exc}") from exc

    async def get_openapi(self) -> httpx.Response:
        return await self._request("GET", "/q/openapi")

    async def get_process_source(self, swf_id: str) -> httpx.Response:
        return await self._request("GET", f"/management/processes/{swf_id}/source")

    async def execute(self, swf_id: str, payload: Any) -> httpx.Response:
        return await self._request("POST", f"/{swf_id}", json=payload)

    async def graphql(self, query: str, variables: dict[str, Any] | None = None) -> httpx.Response:
        body: dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables
        return await self._request("POST", "/graphql", json=body)

    async def list_instances(self) -> httpx.Response:
        return await self.graphql(PROCESS_INSTANCES_QUERY)

    async def get_instance(self, instance_id: str) -> httpx.Response:
        return await self.graphql(PROCESS_INSTANCE_QUERY, {"id": instance_id})
