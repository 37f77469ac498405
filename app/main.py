"""
SWF Backend - FastAPI Application
Exposes serverless workflow definitions to the workflow engine and the
engine's runtime state back to the host platform.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import actions, health, swf
from app.config import Settings, get_settings
from app.core.exceptions import SwfError
from app.core.logger import configure_logging
from app.integrations import ActionCatalog, KogitoClient, ScaffolderClient, ServiceDiscovery
from app.services.data_input_schema import DataInputSchemaService
from app.services.engine_supervisor import EngineSupervisor, ProcessLauncher
from app.services.event_broker import SWF_TOPIC, EventBroker, EventParams
from app.services.workflow_service import WorkflowService, spec_lister_for

logger = logging.getLogger(__name__)


def error_body(exc: Exception) -> dict:
    return {"error": {"name": exc.__class__.__name__, "message": str(exc)}}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SwfError)
    async def swf_error_handler(request: Request, exc: SwfError) -> JSONResponse:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc))

    @app.exception_handler(httpx.HTTPError)
    async def upstream_error_handler(request: Request, exc: httpx.HTTPError) -> JSONResponse:
        logger.error("Upstream call for %s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=error_body(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error for %s %s", request.method, request.url.path)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_body(exc))


def create_app(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    launcher: ProcessLauncher | None = None,
    event_broker: EventBroker | None = None,
    discovery: ServiceDiscovery | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    broker = event_broker or EventBroker()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown events."""
        logger.info("Starting %s...", settings.app_name)
        client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        scaffolder = ScaffolderClient(client, discovery or ServiceDiscovery(settings.backend_base_url))

        app.state.event_broker = broker
        app.state.kogito_client = KogitoClient(client, settings.engine_url)
        app.state.scaffolder_client = scaffolder
        app.state.workflow_service = WorkflowService(
            resources_path=settings.resources_root,
            data_input_schema_service=DataInputSchemaService(ActionCatalog(scaffolder)),
            http_client=client,
            spec_lister=spec_lister_for(settings.swf_spec_listing),
        )

        supervisor = EngineSupervisor(settings.engine_config(), client, launcher=launcher)
        app.state.engine_handle = await supervisor.start()
        logger.info("Workflow engine state: %s", app.state.engine_handle.state.value)

        await broker.publish(EventParams(topic=SWF_TOPIC, event_payload={}))
        logger.info("=" * 50)
        try:
            yield
        finally:
            if http_client is None:
                await client.aclose()
            logger.info("Shutting down %s...", settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        description="Serverless workflow backend",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, prefix=settings.api_prefix, tags=["Health"])
    app.include_router(swf.router, prefix=settings.api_prefix, tags=["SWF"])
    app.include_router(actions.router, prefix=settings.api_prefix, tags=["Actions"])
    return app


app = create_app()
