#!/usr/bin/env python3
"""
Tubely FastAPI Application Entry Point

This module builds the Tubely video-hosting API:
- FastAPI application with CORS and request logging middleware
- API routers mounted under /api
- Static mount serving locally stored assets
- Startup/shutdown lifecycle for logging, MongoDB and the assets root
- Health and readiness endpoints for monitoring

API Structure:
    POST /api/thumbnails/{video_id}  - Upload a thumbnail image
    POST /api/videos                 - Create a draft video record
    GET  /api/videos                 - List the caller's videos
    GET  /api/videos/{video_id}      - Fetch one video record
    POST /api/videos/{video_id}      - Upload and process the video file

Usage:
    # Run with uvicorn directly
    uvicorn tubely.main:app --host 0.0.0.0 --port 8091 --reload

    # Run as Python script
    python -m tubely.main
"""

import logging
import os
import shutil
import time
import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from tubely import __app_name__, __version__
from tubely.api import api_router
from tubely.config import Settings, get_settings
from tubely.core.database import close_db, get_db_client, init_db
from tubely.utils.logger import setup_logging
from tubely.utils.responses import register_exception_handlers


# Configure module logger
logger = logging.getLogger(__name__)

# HTTP status code constants
HTTP_ERROR_THRESHOLD = 400  # Status codes >= 400 indicate errors

REQUEST_ID_HEADER = "X-Request-ID"


# =============================================================================
# Application Lifespan Management
# =============================================================================


def _check_media_tools(settings: Settings) -> None:
    for tool in (settings.ffprobe_path, settings.ffmpeg_path):
        if shutil.which(tool) is None:
            logger.warning("%s not found on PATH; video uploads will fail", tool)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown.

    - Startup: configure logging, connect MongoDB, create the local assets
      root, and warn about missing ffprobe/ffmpeg binaries
    - Shutdown: close the MongoDB connection
    """
    settings: Settings = app.state.settings

    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    logger.info("=" * 60)
    logger.info("%s API Starting...", settings.app_name)
    logger.info("=" * 60)
    logger.info("Environment: %s", settings.app_env)
    logger.info("Debug Mode: %s", settings.debug)
    logger.info("Storage Backend: %s", settings.storage_backend)
    logger.info("Host: %s:%s", settings.host, settings.port)

    try:
        await init_db(settings)
    except RuntimeError:
        logger.exception("Failed to initialize MongoDB")
        raise

    if not settings.uses_s3:
        os.makedirs(settings.assets_root, exist_ok=True)

    _check_media_tools(settings)

    logger.info("%s API Ready to Accept Requests", settings.app_name)

    yield

    logger.info("%s API Shutting Down...", settings.app_name)
    await close_db()
    logger.info("%s API Shutdown Complete", settings.app_name)


# =============================================================================
# Middleware
# =============================================================================


async def request_logging_middleware(request: Request, call_next) -> Response:
    """
    Log each request with its status and timing.

    Sets ``X-Request-ID`` (reusing the client's value when present) and
    ``X-Process-Time`` on every response.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    start_time = time.perf_counter()

    logger.debug("Request started: %s %s [Request-ID: %s]", request.method, request.url.path, request_id)

    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "Request failed: %s %s [Request-ID: %s]",
            request.method,
            request.url.path,
            request_id,
        )
        raise

    process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time"] = f"{process_time_ms}ms"
    response.headers[REQUEST_ID_HEADER] = request_id

    log_level = logging.INFO if response.status_code < HTTP_ERROR_THRESHOLD else logging.WARNING
    logger.log(
        log_level,
        "Request completed: %s %s [Status: %d] [Time: %sms] [Request-ID: %s]",
        request.method,
        request.url.path,
        response.status_code,
        process_time_ms,
        request_id,
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": process_time_ms,
        },
    )
    return response


# =============================================================================
# Core Endpoints
# =============================================================================


async def root() -> dict[str, Any]:
    """API name, version and documentation links."""
    return {
        "name": f"{__app_name__} API",
        "version": __version__,
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc",
            "openapi": "/openapi.json",
        },
        "api_prefix": "/api",
    }


async def health_check() -> dict[str, Any]:
    """
    Liveness check for load balancers and container orchestrators.

    Always reports healthy while the process is serving requests.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": __version__,
        "service": f"{__app_name__} API",
    }


async def readiness_check() -> dict[str, Any]:
    """
    Readiness check: the service is ready once MongoDB answers a ping.
    """
    checks: dict[str, bool] = {}
    try:
        checks["mongodb"] = await get_db_client().ping()
    except RuntimeError:
        checks["mongodb"] = False

    return {
        "ready": checks["mongodb"],
        "timestamp": datetime.now(UTC).isoformat(),
        "checks": checks,
    }


# =============================================================================
# Application Factory
# =============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the Tubely FastAPI application.

    Args:
        settings: Optional Settings instance. If not provided, uses get_settings().
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title=f"{__app_name__} API",
        description="Video hosting backend: thumbnail and video uploads for video records.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "X-Process-Time"],
    )
    app.middleware("http")(request_logging_middleware)

    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")

    app.add_api_route("/", root, methods=["GET"], tags=["root"], summary="API Root")
    app.add_api_route("/health", health_check, methods=["GET"], tags=["health"], summary="Health Check")
    app.add_api_route("/ready", readiness_check, methods=["GET"], tags=["health"], summary="Readiness Check")

    if not settings.uses_s3:
        app.mount(
            f"/{settings.assets_url_path}",
            StaticFiles(directory=settings.assets_root, check_dir=False),
            name="assets",
        )

    return app


app = create_app()


# =============================================================================
# Main Execution Block
# =============================================================================

if __name__ == "__main__":
    _settings = get_settings()
    uvicorn.run(
        "tubely.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.debug,
        log_level=_settings.log_level,
    )
