"""API endpoints for the dictionary service."""

from .search import router as search_router
from .status import router as status_router
from .health import router as health_router
from .metrics import router as metrics_router

__all__ = [
    "search_router",
    "status_router",
    "health_router",
    "metrics_router",
]
