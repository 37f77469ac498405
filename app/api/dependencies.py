"""Shared API dependencies resolved from application state."""
from __future__ import annotations

import httpx
from fastapi import Request
from fastapi.responses import Response

from app.integrations import KogitoClient, ScaffolderClient
from app.services.engine_supervisor import EngineProcessHandle
from app.services.workflow_service import WorkflowService


def get_workflow_service(request: Request) -> WorkflowService:
    return request.app.state.workflow_service


def get_kogito_client(request: Request) -> KogitoClient:
    return request.app.state.kogito_client


def get_scaffolder_client(request: Request) -> ScaffolderClient:
    return request.app.state.scaffolder_client


def get_engine_handle(request: Request) -> EngineProcessHandle | None:
    return getattr(request.app.state, "engine_handle", None)


def passthrough(upstream: httpx.Response) -> Response:
    """Relay an upstream response's status code and body unchanged."""
    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type=upstream.headers.get("content-type", "application/json"),
    )


__all__ = [
    "get_engine_handle",
    "get_kogito_client",
    "get_scaffolder_client",
    "get_workflow_service",
    "passthrough",
]
