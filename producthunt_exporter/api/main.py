"""
FastAPI application for the Product Hunt exporter.

This module initializes and configures the FastAPI application that serves
the CSV export endpoints.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from producthunt_exporter.api.endpoints import export
from producthunt_exporter.config.settings import get_settings
from producthunt_exporter.exceptions import ExportError, NoPostsFoundError
from producthunt_exporter.utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)

# HTTP status for each ExportError code
ERROR_STATUS: Dict[str, int] = {
    "configuration_error": 500,
    "invalid_input": 400,
    "not_found": 404,
    "upstream_error": 502,
    "throttled": 502,
    "cancelled": 504,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup and shutdown events.
    """
    settings = get_settings()
    setup_logging(settings.LOGGING_CONFIG_PATH)
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    if not (settings.PRODUCT_HUNT_ACCESS_TOKEN or "").strip():
        logger.warning("PRODUCT_HUNT_ACCESS_TOKEN is not set - export requests will fail")

    yield

    logger.info("Shutting down application")


async def export_error_handler(request: Request, exc: ExportError) -> JSONResponse:
    """Translate an ExportError raised by an endpoint into a JSON error body."""
    status_code = ERROR_STATUS.get(exc.code, 500)
    content = {"error": exc.message}
    if exc.details:
        content["details"] = exc.details
    if isinstance(exc, NoPostsFoundError):
        content["date"] = exc.date
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed with {exc.code}: {exc.message}")
    return JSONResponse(status_code=status_code, content=content)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    settings = get_settings()
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""Export Product Hunt posts featured on a given day as CSV.

        This API provides endpoints for:
        - Buffered CSV download
        - CSV export with live progress over server-sent events
        - Previewing the latest posts
        - Health monitoring""",
        debug=settings.DEBUG,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "export", "description": "CSV export operations"},
            {"name": "health", "description": "Health check and monitoring"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS if not settings.DEBUG else ["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    app.add_exception_handler(ExportError, export_error_handler)

    app.include_router(export.router, prefix="/api/v1", tags=["export"])

    @app.get("/health", tags=["health"], summary="Health Check")
    async def health_check():
        """
        Health check endpoint.

        Returns:
            dict: Service status, version, timestamp and whether a token is configured
        """
        current = get_settings()
        return {
            "status": "healthy",
            "service": current.APP_NAME,
            "version": current.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "token_configured": bool((current.PRODUCT_HUNT_ACCESS_TOKEN or "").strip()),
            "debug_mode": current.DEBUG,
        }

    return app


# Create the application instance
app = create_app()
