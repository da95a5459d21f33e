from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal import __version__
from portal.app.api import config_router, query_router, site_router
from portal.app.core.config import Settings, settings as default_settings
from portal.app.core.logging import get_logger, setup_logging
from portal.app.db.pool import QueryPool, close_query_pool, get_query_pool
from portal.app.exceptions import PortalException
from portal.app.middleware import (
    DEFAULT_SECURITY_HEADERS,
    LoadSheddingMiddleware,
    PathWhitelistMiddleware,
    RateLimitMiddleware,
    RequestIdMiddleware,
    RequestSizeLimitMiddleware,
    RequestTimeoutMiddleware,
    SecurityHeadersMiddleware,
)
from portal.app.services.admission import AdmissionState


def create_app(
    settings: Optional[Settings] = None,
    admission: Optional[AdmissionState] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to build from; the module-level settings by default
        admission: Admission state to use; built from settings by default

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or default_settings
    admission = admission or AdmissionState.from_settings(settings)

    setup_logging(settings)
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start admission background tasks; release the pool on shutdown."""
        await admission.start(monitor_loop_lag=settings.load_shedding_enabled)
        logger.info(
            "Application startup complete",
            extra={
                "rate_limit": settings.rate_limit_requests_per_minute if settings.rate_limit_enabled else None,
                "request_timeout": settings.request_timeout_seconds,
                "raw_query_enabled": settings.raw_query_enabled,
            },
        )
        yield

        await admission.stop()
        await close_query_pool()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Portal Site API",
        description="Read-only JSON API for the corporate website",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.admission = admission
    app.state.settings = settings

    # Middleware: last added = first executed. Added innermost first so the
    # request passes security headers -> whitelist -> load shedding -> CORS
    # -> body size -> rate limit -> request id -> timeout -> route.
    app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=settings.request_timeout_seconds)
    app.add_middleware(RequestIdMiddleware)
    if settings.rate_limit_enabled:
        app.add_middleware(RateLimitMiddleware, limiter=admission.limiter)
    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=settings.max_body_bytes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "RateLimit-Limit", "RateLimit-Remaining", "RateLimit-Reset"],
        max_age=600,
    )
    if settings.load_shedding_enabled:
        app.add_middleware(LoadSheddingMiddleware, monitor=admission.monitor)
    app.add_middleware(PathWhitelistMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(config_router)
    app.include_router(site_router)
    if settings.raw_query_enabled:
        app.include_router(query_router)

    @app.get("/api/health")
    async def health(pool: QueryPool = Depends(get_query_pool)) -> dict[str, Any]:
        """Health check with database and admission status."""
        database_ok = await pool.ping()
        return {
            "status": "ok" if database_ok else "degraded",
            "components": {
                "database": {"status": "ok" if database_ok else "error", "pool": pool.status()},
                "admission": admission.stats(),
            },
        }

    @app.exception_handler(PortalException)
    async def portal_exception_handler(request: Request, exc: PortalException) -> JSONResponse:
        """Render application errors as {"error": message}."""
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid request parameters."})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Last-resort handler for anything that escaped the endpoints.

        Logs the full traceback server-side; the client only ever sees a
        generic message.
        """
        request_id = getattr(request.state, "request_id", "unknown")
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
            },
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error."},
            headers=DEFAULT_SECURITY_HEADERS,
        )

    return app


# Create the application instance
app = create_app()
