from __future__ import annotations

import httpx
import pytest

from app.core.exceptions import FetchFailureError
from app.integrations import ActionCatalog, ScaffolderClient, ServiceDiscovery


def make_catalog(handler) -> ActionCatalog:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ActionCatalog(ScaffolderClient(client, ServiceDiscovery("http://backstage.test")))


@pytest.mark.asyncio
async def test_fetch_input_schemas_keeps_actions_with_input():
    actions = [
        {"id": "fetch:template", "schema": {"input": {"type": "object"}}},
        {"id": "debug:log", "schema": {"input": {}}},
        {"id": "publish:github"},
        {"description": "no id"},
    ]
    catalog = make_catalog(lambda request: httpx.Response(200, json=actions))

    assert await catalog.fetch_input_schemas() == {"fetch:template": {"type": "object"}}


@pytest.mark.asyncio
async def test_fetch_input_schemas_accepts_wrapped_list():
    body = {"actions": [{"id": "a", "schema": {"input": {"type": "object"}}}]}
    catalog = make_catalog(lambda request: httpx.Response(200, json=body))
    assert list(await catalog.fetch_input_schemas()) == ["a"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [httpx.Response(503, json={}), httpx.Response(200, text="not json")],
)
async def test_fetch_input_schemas_failure(response):
    catalog = make_catalog(lambda request: response)
    with pytest.raises(FetchFailureError):
        await catalog.fetch_input_schemas()


@pytest.mark.asyncio
async def test_fetch_input_schemas_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(FetchFailureError):
        await make_catalog(handler).fetch_input_schemas()
