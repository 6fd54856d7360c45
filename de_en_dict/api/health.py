"""Health check API endpoints."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..config import get_settings
from ..models.response import HealthResponse
from ..protocol.states import MainState, WorkerState
from ..runtime import DictionaryRuntime
from .dependencies import get_runtime

router = APIRouter(prefix="/api/v1", tags=["health"])
settings = get_settings()

# Track application start time
app_start_time = time.time()

_DEPENDENCY_STATUS = {
    MainState.READY: "healthy",
    MainState.SEARCHING: "healthy",
    MainState.INIT: "degraded",
    MainState.AWAITING_DICT: "degraded",
    MainState.ERROR: "unhealthy",
}


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health status of the dictionary service",
)
async def health_check(runtime: DictionaryRuntime = Depends(get_runtime)) -> HealthResponse:
    """
    Perform a health check on the dictionary service.

    The service is degraded while the dictionary loads and unhealthy once the
    controller has entered its error state.
    """
    controller = runtime.controller
    worker = runtime.worker
    dependencies = {
        "controller": _DEPENDENCY_STATUS[controller.state] if controller else "unhealthy",
        "worker": "healthy" if worker and worker.state != WorkerState.ERROR else "unhealthy",
        "http_client": "healthy" if runtime.client and not runtime.client.is_closed else "unhealthy",
    }

    if all(status == "healthy" for status in dependencies.values()):
        status = "healthy"
    elif any(status == "unhealthy" for status in dependencies.values()):
        status = "unhealthy"
    else:
        status = "degraded"

    return HealthResponse(
        status=status,
        version=settings.app_version,
        uptime=time.time() - app_start_time,
        dependencies=dependencies,
    )


@router.get(
    "/health/ready",
    summary="Readiness check",
    description="Check if the dictionary is loaded and searches are accepted",
)
async def readiness_check(runtime: DictionaryRuntime = Depends(get_runtime)) -> JSONResponse:
    """
    Check if the service is ready to accept requests.

    Used by load balancers and orchestration systems; searching counts as
    ready because the next request is only briefly refused.
    """
    controller = runtime.controller
    ready = controller is not None and controller.state in (MainState.READY, MainState.SEARCHING)
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "not_ready",
            "state": controller.state.value if controller else None,
            "dictionary_lines": controller.stats.lines if controller else 0,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


@router.get(
    "/health/live",
    summary="Liveness check",
    description="Check if the service is alive and responding",
)
async def liveness_check() -> JSONResponse:
    """Check if the service process is still running and responsive."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "alive",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": time.time() - app_start_time,
        },
    )
