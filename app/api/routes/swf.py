"""
SWF API Routes
Host-facing endpoints backed by the workflow store and the workflow engine.
"""
from __future__ import annotations

import json
import logging
from typing import Any

import yaml
from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.responses import Response
from pydantic import ValidationError

from app.api.dependencies import get_kogito_client, get_workflow_service, passthrough
from app.integrations import KogitoClient
from app.schemas.workflow import SpecFile, SwfItem, SwfListResult, WorkflowSubmission
from app.services.workflow_service import WorkflowService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/items", response_model=SwfListResult, response_model_by_alias=True)
async def list_items(kogito: KogitoClient = Depends(get_kogito_client)) -> SwfListResult:
    response = await kogito.get_openapi()
    # /q/openapi answers YAML by default; JSON parses as YAML too.
    data = yaml.safe_load(response.content) if response.content else None
    tags = data.get("tags") if isinstance(data, dict) else None

    items = [
        SwfItem(
            id=tag.get("name"),
            name=tag.get("name"),
            description=tag.get("description"),
            definition="",
        )
        for tag in tags or []
        if isinstance(tag, dict) and tag.get("name")
    ]
    return SwfListResult(items=items, limit=0, offset=0, totalCount=len(items))


@router.get("/items/{swf_id}", response_model=SwfItem)
async def get_item(swf_id: str, kogito: KogitoClient = Depends(get_kogito_client)) -> SwfItem:
    response = await kogito.get_process_source(swf_id)
    source = response.json()
    return SwfItem(
        id=swf_id,
        name=source.get("name"),
        description=source.get("description"),
        definition=json.dumps(source, indent=2),
    )


@router.post("/execute/{swf_id}")
async def execute(
    swf_id: str,
    payload: Any = Body(default=None),
    kogito: KogitoClient = Depends(get_kogito_client),
) -> Response:
    return passthrough(await kogito.execute(swf_id, payload))


@router.get("/instances")
async def list_instances(kogito: KogitoClient = Depends(get_kogito_client)) -> Any:
    response = await kogito.list_instances()
    return response.json()


@router.get("/instances/{instance_id}")
async def get_instance(instance_id: str, kogito: KogitoClient = Depends(get_kogito_client)) -> Any:
    response = await kogito.get_instance(instance_id)
    return response.json()


@router.post("/workflows", status_code=status.HTTP_201_CREATED, response_model=SwfItem)
async def create_workflow(
    url: str | None = Query(default=None),
    payload: dict[str, Any] | None = Body(default=None),
    workflow_service: WorkflowService = Depends(get_workflow_service),
) -> SwfItem:
    if url and url.startswith(("http://", "https://")):
        created = await workflow_service.save_workflow_definition_from_url(url)
    else:
        if url:
            logger.warning("Ignoring non-http workflow url %s, saving request body", url)
        try:
            submission = WorkflowSubmission.model_validate(payload or {})
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False)) from exc
        created = await workflow_service.save_workflow_definition(submission)

    return SwfItem(
        id=created.definition.id,
        name="",
        description="",
        definition=json.dumps({"uri": created.uri, "definition": created.definition.to_document()}),
    )


@router.delete("/workflows/{uri}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workflow(
    uri: str,
    workflow_service: WorkflowService = Depends(get_workflow_service),
) -> Response:
    await workflow_service.delete_workflow_definition_by_id(uri)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/specs", response_model=list[SpecFile])
async def list_specs(workflow_service: WorkflowService = Depends(get_workflow_service)) -> list[SpecFile]:
    return await workflow_service.list_stored_specs()
