"""FastAPI application entry point.

Configures the application with logging, exception handling, health checks
and the discovery engine lifecycle.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from resonance import __version__
from resonance.api.routes import router
from resonance.config import Settings, get_settings
from resonance.discovery.engine import DiscoveryEngine
from resonance.exceptions import ErrorCode, ResonanceError
from resonance.logging_config import get_logger, setup_logging
from resonance.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Starts the discovery engine on startup and stops it on shutdown.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)
    logger.info(
        "Starting Resonance",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
        },
    )

    engine: DiscoveryEngine = app.state.engine
    await engine.start()

    yield

    logger.info("Shutting down Resonance")
    await engine.stop()


def create_app(
    engine: DiscoveryEngine | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        engine: Engine to serve (a new one is built if omitted).
        settings: Application settings (cached settings if omitted).

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Resonance",
        description="Cross-collection visual similarity discovery",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.engine = engine or DiscoveryEngine(settings)

    app.add_middleware(MetricsMiddleware)
    app.add_exception_handler(ResonanceError, resonance_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Observability"])
    app.include_router(router)

    return app


async def resonance_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle ResonanceError exceptions.

    Converts exceptions to structured JSON responses.
    """
    if not isinstance(exc, ResonanceError):
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": ErrorCode.INTERNAL_ERROR.value,
                    "message": str(exc),
                    "details": {},
                }
            },
        )

    logger.error(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(
        status_code=_get_status_code(exc.code),
        content=exc.to_dict(),
    )


def _get_status_code(error_code: ErrorCode) -> int:
    """Map error code to HTTP status code."""
    if error_code in (ErrorCode.VALIDATION_ERROR, ErrorCode.EMBEDDING_DIMENSION_MISMATCH):
        return 400

    if error_code in (
        ErrorCode.PHOTO_NOT_FOUND,
        ErrorCode.LINK_NOT_FOUND,
        ErrorCode.INDEX_COLLECTION_NOT_FOUND,
    ):
        return 404

    if error_code in (ErrorCode.LINK_EXISTS,):
        return 409

    if error_code in (ErrorCode.SCHEDULER_STOPPED,):
        return 503

    return 500


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version and timestamp.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check(request: Request) -> dict[str, Any]:
    """Readiness probe.

    Reports whether the discovery scheduler is accepting work.

    Returns:
        Readiness status with component checks.
    """
    engine: DiscoveryEngine = request.app.state.engine
    checks: dict[str, str] = {
        "config": "ok",
        "scheduler": "ok" if engine.scheduler.running else "stopped",
    }

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def liveness_check() -> dict[str, str]:
    """Liveness probe.

    Returns:
        Liveness status.
    """
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


# Create the application instance
app = create_app()
