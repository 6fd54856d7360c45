"""Dictionary status and reload endpoints."""

import structlog
from fastapi import APIRouter, Depends

from ..models.response import ReloadResponse, StatusResponse
from ..protocol.states import MainState
from ..runtime import DictionaryRuntime
from .dependencies import get_runtime

router = APIRouter(prefix="/api/v1", tags=["status"])
logger = structlog.get_logger(__name__)


@router.get(
    "/status",
    response_model=StatusResponse,
    summary="Dictionary status",
    description="Controller state, load progress and dictionary statistics",
)
async def dictionary_status(runtime: DictionaryRuntime = Depends(get_runtime)) -> StatusResponse:
    """
    Get the current state of the dictionary.

    While the dictionary downloads, ``load_progress`` reports the percentage
    received. In the Error state ``diagnostic`` holds the error log.
    """
    controller = runtime.controller
    if controller is None:
        return StatusResponse(state=MainState.INIT, ready=False, stats={}, reloads=runtime.reloads)
    status = controller.status()
    return StatusResponse(
        **status.model_dump(exclude={"cached_queries"}),
        ready=status.state == MainState.READY,
        reloads=runtime.reloads,
    )


@router.post(
    "/reload",
    response_model=ReloadResponse,
    summary="Reload the dictionary",
    description="Restart the dictionary worker; the way out of the Error state",
)
async def reload_dictionary(runtime: DictionaryRuntime = Depends(get_runtime)) -> ReloadResponse:
    """Restart the worker and controller and load the dictionary again."""
    controller = await runtime.reload()
    logger.info("Dictionary reload requested", reloads=runtime.reloads)
    return ReloadResponse(state=controller.state, reloads=runtime.reloads)
