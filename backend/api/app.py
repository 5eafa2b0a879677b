"""
FastAPI application factory.

Creates and configures the FastAPI application instance.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.config import get_settings
from shared.exceptions import CrateMatchError
from shared.logging_config import configure_logging

from .dependencies import get_container
from .middleware.headers import ResponseHeadersMiddleware
from .middleware.rate_limit import RateLimitMiddleware
from .routes import auth, health
from modules.crates.routes import router as crates_router

logger = logging.getLogger(__name__)

EXPOSED_HEADERS = [
    "X-Auto-Downgraded",
    "X-New-Access-Token",
    "X-New-Refresh-Token",
    "X-RateLimit-Limit",
    "X-RateLimit-Remaining",
    "X-RateLimit-Reset",
    "X-RateLimit-Global-Remaining",
    "X-RateLimit-Global-Reset",
    "Retry-After",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Starts the background sweeps on startup and stops them on shutdown.
    """
    settings = get_settings()
    configure_logging(settings)
    container = get_container()
    container.prepare_directories()
    scheduler = container.build_scheduler()
    scheduler.start()
    logger.info(f"Starting {settings.app_name} on {settings.host}:{settings.port}")
    yield
    cancelled = container.job_registry.cancel_all()
    if cancelled:
        logger.info(f"Cancelled {cancelled} running jobs")
    await scheduler.stop()
    logger.info(f"Shutting down {settings.app_name}")


async def crate_match_error_handler(request: Request, exc: CrateMatchError) -> JSONResponse:
    """Render any CrateMatchError as ``{"error", "message", ...details}``."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers,
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Playlist-to-crate matching API",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )

    app.add_exception_handler(CrateMatchError, crate_match_error_handler)

    # Added innermost first: CORS wraps rate limiting, which wraps gate headers
    app.add_middleware(ResponseHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=lambda: get_container().rate_limiter,
        session_cache=lambda: get_container().session_cache,
        enabled=settings.rate_limit_enabled,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        expose_headers=EXPOSED_HEADERS,
    )

    # Register routes
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(auth.router, tags=["auth"])
    app.include_router(crates_router, tags=["crates"])

    return app


# Application instance for uvicorn
app = create_app()
