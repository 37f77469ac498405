"""
Health API Routes
"""
from fastapi import APIRouter, Depends

from app.api.dependencies import get_engine_handle
from app.services.engine_supervisor import EngineProcessHandle, EngineState

router = APIRouter()


@router.get("/health")
async def health_check(engine: EngineProcessHandle | None = Depends(get_engine_handle)) -> dict:
    """Backend liveness. Always 200; the engine state is informational only."""
    return {
        "status": "ok",
        "engine": (engine.state if engine else EngineState.NOT_STARTED).value,
    }
