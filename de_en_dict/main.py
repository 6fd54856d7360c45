"""Main FastAPI application for the German-English dictionary."""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from .api import health_router, metrics_router, search_router, status_router
from .config import get_settings
from .exceptions import ControllerError
from .logging_config import configure_logging
from .models.response import ErrorResponse
from .runtime import DictionaryRuntime

settings = get_settings()
configure_logging(settings)

logger = structlog.get_logger()

DESCRIPTION = "Ranked, umlaut-aware search over the TU Chemnitz German-English dictionary"


def create_app(runtime: Optional[DictionaryRuntime] = None) -> FastAPI:
    """
    Build the application.

    Args:
        runtime: Runtime to serve; one is built from the settings if omitted
    """
    runtime = runtime or DictionaryRuntime(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        logger.info("Starting dictionary service", version=settings.app_version)
        app.state.runtime = runtime
        await runtime.start()

        yield

        logger.info("Shutting down dictionary service")
        await runtime.close()

    app = FastAPI(
        title=settings.app_name,
        description=DESCRIPTION,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.middleware("http")
    async def log_requests(request: Request, call_next) -> Response:
        """Log all HTTP requests."""
        start_time = time.time()
        logger.info(
            "Request started",
            method=request.method,
            url=str(request.url),
            client_ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            "Request completed",
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
            process_time_ms=round(process_time * 1000, 2),
        )
        return response

    @app.exception_handler(ControllerError)
    async def controller_exception_handler(request: Request, exc: ControllerError) -> JSONResponse:
        """Map controller refusals to HTTP status codes."""
        logger.info(
            "Request refused by controller",
            url=str(request.url),
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=type(exc).__name__,
                message=str(exc),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle global exceptions."""
        logger.error(
            "Unhandled exception",
            method=request.method,
            url=str(request.url),
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal Server Error",
                message="An unexpected error occurred",
                details={"exception": str(exc)} if settings.debug else None,
            ).model_dump(mode="json"),
        )

    app.include_router(search_router)
    app.include_router(status_router)
    app.include_router(health_router)
    app.include_router(metrics_router)

    @app.get("/", summary="Root endpoint", description="Get basic information about the API")
    async def root() -> dict:
        """Root endpoint with basic API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "description": DESCRIPTION,
            "docs_url": "/docs",
            "health_url": "/api/v1/health",
            "status": "running",
        }

    @app.get("/api", summary="API information", description="Get detailed API information")
    async def api_info() -> dict:
        """Get detailed API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "description": DESCRIPTION,
            "endpoints": {
                "search": "/api/v1/search/{query}",
                "random": "/api/v1/random",
                "status": "/api/v1/status",
                "reload": "/api/v1/reload",
                "health": "/api/v1/health",
                "metrics": "/api/v1/metrics",
            },
            "features": [
                "Umlaut, accent and ligature equivalences (Strasse finds Straße)",
                "'*' wildcards inside search terms",
                "Ranking by position and whole-word matches",
                "Cached dictionary with background update check",
                "Result cache for repeated searches",
                "Suggestions for searches without matches",
            ],
            "limits": {
                "max_query_length": settings.max_query_length,
                "max_results": settings.max_results,
                "result_cache_size": settings.result_cache_size,
            },
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "de_en_dict.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
        log_level=settings.log_level.lower(),
    )
