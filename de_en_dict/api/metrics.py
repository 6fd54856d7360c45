"""Metrics and monitoring API endpoints."""

import psutil
from fastapi import APIRouter, Depends

from ..models.response import MetricsResponse
from ..runtime import DictionaryRuntime
from .dependencies import get_runtime

router = APIRouter(prefix="/api/v1", tags=["metrics"])


@router.get(
    "/metrics",
    response_model=MetricsResponse,
    summary="Get performance metrics",
    description="Search statistics of the worker and memory usage of the process",
)
async def get_metrics(runtime: DictionaryRuntime = Depends(get_runtime)) -> MetricsResponse:
    """
    Get performance metrics for the dictionary service.

    Search statistics are those of the current worker and restart from zero
    after a reload.
    """
    stats = runtime.worker.engine.get_stats() if runtime.worker else {}
    controller = runtime.controller
    memory_usage_mb = psutil.Process().memory_info().rss / (1024 * 1024)

    return MetricsResponse(
        total_searches=int(stats.get("total_searches", 0)),
        total_matches=int(stats.get("total_matches", 0)),
        average_search_time_ms=stats.get("average_execution_time_ms", 0.0),
        cached_queries=len(controller.results_cache) if controller else 0,
        dictionary_lines=controller.stats.lines if controller else 0,
        memory_usage_mb=memory_usage_mb,
    )
