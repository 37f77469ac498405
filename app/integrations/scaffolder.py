from __future__ import annotations

import logging
from typing import Any

import httpx

from app.core.exceptions import FetchFailureError

logger = logging.getLogger(__name__)

SCAFFOLDER_SERVICE = "scaffolder"


class ServiceDiscovery:
    """Resolves a host plugin id to its backend base URL."""

    def __init__(self, backend_base_url: str, overrides: dict[str, str] | None = None):
        self.backend_base_url = backend_base_url.rstrip("/")
        self.overrides = {k: v.rstrip("/") for k, v in (overrides or {}).items()}

    async def get_base_url(self, plugin_id: str) -> str:
        if plugin_id in self.overrides:
            return self.overrides[plugin_id]
        return f"{self.backend_base_url}/api/{plugin_id}"


class ScaffolderClient:
    """Host action catalog (scaffolder actions API)."""

    def __init__(self, client: httpx.AsyncClient, discovery: ServiceDiscovery):
        self.client = client
        self.discovery = discovery

    async def list_actions(self) -> httpx.Response:
        base_url = await self.discovery.get_base_url(SCAFFOLDER_SERVICE)
        return await self.client.get(f"{base_url}/v2/actions")

    async def execute_action(self, action_id: str, payload: Any) -> httpx.Response:
        base_url = await self.discovery.get_base_url(SCAFFOLDER_SERVICE)
        return await self.client.post(f"{base_url}/v2/actions/{action_id}", json=payload)


class ActionCatalog:
    """Action id -> input JSON-Schema view over the scaffolder actions list."""

    def __init__(self, scaffolder: ScaffolderClient):
        self.scaffolder = scaffolder

    async def fetch_input_schemas(self) -> dict[str, dict[str, Any]]:
        try:
            response = await self.scaffolder.list_actions()
            response.raise_for_status()
            actions = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise FetchFailureError(f"Could not load action catalog: {exc}") from exc

        if isinstance(actions, dict):
            actions = actions.get("actions") or actions.get("items") or []

        schemas: dict[str, dict[str, Any]] = {}
        for action in actions or []:
            if not isinstance(action, dict) or not action.get("id"):
                continue
            input_schema = (action.get("schema") or {}).get("input")
            if isinstance(input_schema, dict) and input_schema:
                schemas[action["id"]] = input_schema
        logger.debug("Action catalog has %s actions with input schemas", len(schemas))
        return schemas
