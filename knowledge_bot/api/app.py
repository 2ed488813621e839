"""FastAPI application entry point.

Configures the application with logging, exception handling, metrics and
health checks.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from knowledge_bot import __version__
from knowledge_bot.api.routes import router
from knowledge_bot.config import get_settings
from knowledge_bot.container import Services
from knowledge_bot.exceptions import ErrorCategory, ErrorCode, KnowledgeBotError
from knowledge_bot.logging_config import get_logger, setup_logging
from knowledge_bot.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level, settings=settings)
    logger.info(
        "Starting knowledge bot API",
        extra={"version": __version__, "environment": settings.environment.value},
    )

    yield

    services: Services | None = getattr(app.state, "services", None)
    if services is not None:
        await services.close()
    logger.info("Shutting down knowledge bot API")


def create_app(services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Pre-built services; built from settings on first use if omitted.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Knowledge Bot",
        description="Grounded answers from a private knowledge base",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(MetricsMiddleware)
    app.add_exception_handler(KnowledgeBotError, knowledge_bot_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Metrics"])
    app.include_router(router)

    return app


async def knowledge_bot_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Convert KnowledgeBotError exceptions to structured JSON responses."""
    if not isinstance(exc, KnowledgeBotError):
        return JSONResponse(
            status_code=500,
            content={"error": {"code": ErrorCode.INTERNAL_ERROR.value, "message": str(exc)}},
        )

    logger.error(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )
    return JSONResponse(status_code=_get_status_code(exc), content=exc.to_dict())


def _get_status_code(exc: KnowledgeBotError) -> int:
    """Map an error to an HTTP status code."""
    if exc.code in (ErrorCode.PROVIDER_TIMEOUT, ErrorCode.STORE_TIMEOUT):
        return 504
    if exc.code == ErrorCode.PROVIDER_RATE_LIMIT:
        return 429
    if exc.code == ErrorCode.DOCUMENT_NOT_FOUND:
        return 404

    category = exc.category
    if category == ErrorCategory.INVALID_REQUEST:
        return 400
    if category == ErrorCategory.NO_KNOWLEDGE:
        return 422
    if category in (ErrorCategory.AI_PROVIDER, ErrorCategory.KNOWLEDGE_BASE):
        return 502
    return 500


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check() -> dict[str, Any]:
    """Readiness probe: configuration loads."""
    settings = get_settings()
    checks: dict[str, str] = {
        "config": "ok",
        "embedding_model": settings.embedding.model,
        "completion_model": settings.llm.model,
    }
    return {
        "status": "ready",
        "checks": checks,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def liveness_check() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


# Create the application instance
app = create_app()
