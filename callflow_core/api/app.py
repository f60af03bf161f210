"""
FastAPI Application Module

Application factory for the callflow HTTP surface.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..config import Settings, get_settings
from ..core.errors import CallflowError, MissingParameterError
from ..core.logging import setup_logging
from ..rules.base import RuleConfigurationError, RuleExhaustionError
from ..rules.templates import TemplateError
from .dependencies import Engine, build_engine
from .routes import router

logger = structlog.get_logger(__name__)


# =============================================================================
# Health Check Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    timestamp: datetime
    checks: Dict[str, Any] = {}


# =============================================================================
# Exception Handlers
# =============================================================================


def error_code(exc: CallflowError) -> str:
    if isinstance(exc, MissingParameterError):
        return "MISSING_PARAMETER"
    if isinstance(exc, RuleExhaustionError):
        return "RULES_EXHAUSTED"
    if isinstance(exc, RuleConfigurationError):
        return "CONFIGURATION_ERROR"
    if isinstance(exc, TemplateError):
        return "TEMPLATE_ERROR"
    return "CALLFLOW_ERROR"


async def callflow_exception_handler(request: Request, exc: CallflowError) -> JSONResponse:
    """Engine errors abort the turn and are reported to the caller."""
    code = error_code(exc)
    logger.warning(
        "request_failed",
        path=request.url.path,
        code=code,
        error_type=type(exc).__name__,
        message=str(exc),
    )
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": {
                "code": code,
                "type": type(exc).__name__,
                "message": str(exc),
            },
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("unhandled_exception", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings, defaults to the environment
        engine: Prebuilt engine components, built from settings when omitted
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("callflow_api_starting", environment=settings.environment)
        yield
        await app.state.engine.close()
        logger.info("callflow_api_stopped")

    app = FastAPI(
        title="Callflow Rules Engine",
        description="Stateful rule evaluation for telephony conversations",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine or build_engine(settings)

    app.add_exception_handler(CallflowError, callflow_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(router)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        cache_stats = app.state.engine.cache.stats
        return HealthResponse(
            version=__version__,
            timestamp=datetime.utcnow(),
            checks={
                "state_backend": settings.state_backend,
                "rule_cache": {
                    "hits": cache_stats.hits,
                    "misses": cache_stats.misses,
                },
            },
        )

    return app


def main() -> None:
    """Run the API server."""
    import uvicorn

    settings = get_settings()
    setup_logging(
        level=settings.log_level,
        format=settings.log_format,
        service_name=settings.service_name,
    )
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
