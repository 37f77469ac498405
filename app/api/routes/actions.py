"""
Action API Routes
Called by the workflow engine; proxied to the host scaffolder actions API.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import Response

from app.api.dependencies import get_scaffolder_client, passthrough
from app.integrations import ScaffolderClient

router = APIRouter()


@router.get("/actions")
async def list_actions(scaffolder: ScaffolderClient = Depends(get_scaffolder_client)) -> Response:
    return passthrough(await scaffolder.list_actions())


@router.post("/actions/{action_id}")
async def execute_action(
    action_id: str,
    payload: Any = Body(default=None),
    scaffolder: ScaffolderClient = Depends(get_scaffolder_client),
) -> Response:
    return passthrough(await scaffolder.execute_action(action_id, payload))
