"""
Traowl Data Service -- FastAPI Application
Thin HTTP surface over the dual-backend data access gateway.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from traowl.api import health, routes_content
from traowl.core.cache import ResponseCache
from traowl.core.config import Settings
from traowl.core.logging_config import configure_logging
from traowl.db.connection import ConnectionManager
from traowl.services.data_service import DataService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """Everything a request needs, constructed once per application."""

    settings: Settings
    connection: ConnectionManager
    cache: ResponseCache
    data_service: DataService


def build_context(settings: Settings) -> ServiceContext:
    connection = ConnectionManager(settings)
    cache = ResponseCache(
        ttl_seconds=settings.cache_ttl_seconds,
        max_entries=settings.cache_max_entries,
    )
    data_service = DataService(settings, connection, cache=cache)
    return ServiceContext(settings, connection, cache, data_service)


def create_app(settings: Optional[Settings] = None, context: Optional[ServiceContext] = None) -> FastAPI:
    """
    Application factory. A supplied ``context`` is used as is and its
    lifecycle stays with the caller; otherwise one is built and connected
    in the lifespan.
    """
    if context is not None:
        settings = context.settings
    settings = settings or Settings()
    owns_context = context is None

    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")
        ctx = context or build_context(settings)
        if owns_context:
            if ctx.data_service.initialize():
                logger.info("Serving from the primary store")
            else:
                logger.warning(f"Serving from flat files in {ctx.data_service.data_path}")
        app.state.context = ctx
        logger.info("Application startup complete -- ready to serve")

        yield

        # Shutdown
        if owns_context:
            ctx.data_service.shutdown()
        logger.info("Application shutting down")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Traowl travel content API with primary store and flat-file fallback.",
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_middleware(request: Request, call_next):
        """Log requests with timing."""
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.3f}"
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.3f}s")
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions gracefully."""
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": str(exc) if settings.debug else "An unexpected error occurred",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(routes_content.router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        """Root -- API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "status": "running",
            "health": f"{settings.api_prefix}/health",
        }

    return app


if __name__ == "__main__":
    import uvicorn

    _settings = Settings()
    uvicorn.run(
        "traowl.main:create_app",
        factory=True,
        host=_settings.api_host,
        port=_settings.api_port,
        reload=_settings.debug,
        log_level=_settings.log_level.lower(),
    )
