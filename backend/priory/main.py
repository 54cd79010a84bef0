"""
Priory API

Main FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from priory.config import Settings, settings as default_settings
from priory.middleware import ErrorHandlerMiddleware, RequestSizeLimitMiddleware
from priory.routes import files, public, rate_limit, shortlinks
from priory.services.rate_limiter import RateLimitStore
from priory.services.record_store import JsonRecordStore

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    app.state.rate_limit_store.start()
    yield
    # Shutdown
    app.state.rate_limit_store.shutdown()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application with its own rate limit store and record stores.

    Args:
        settings: Settings to use instead of the environment-derived defaults
    """
    settings = settings or default_settings

    app = FastAPI(
        title=f"{settings.SITE_NAME} API",
        description="File hosting, URL shortening and upload tooling",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.storage = None  # created on first use, see dependencies.get_storage
    app.state.rate_limit_store = RateLimitStore(
        cleanup_interval_seconds=settings.RATE_LIMIT_CLEANUP_INTERVAL_SECONDS,
    )
    app.state.file_records = JsonRecordStore(settings.STORAGE_PATH, "files")
    app.state.shortlink_records = JsonRecordStore(settings.STORAGE_PATH, "shortlinks")
    app.state.click_records = JsonRecordStore(settings.STORAGE_PATH, "clicks")

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(
        RequestSizeLimitMiddleware,
        max_body_size=settings.MAX_BODY_SIZE,
        max_json_size=settings.MAX_JSON_SIZE,
        max_file_size=settings.MAX_UPLOAD_SIZE,
    )

    # Error handling middleware
    app.add_middleware(ErrorHandlerMiddleware)

    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {
            "status": "ok",
            "service": f"{settings.SITE_NAME} API",
            "version": VERSION,
        }

    @app.get("/health")
    async def health_check(request: Request):
        """
        Detailed health check endpoint.

        Returns service health status and the rate limit sweep state.
        """
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
            "rateLimitSweep": request.app.state.rate_limit_store.scheduler_status(),
        }

    # Register routers; public last so /{code} never shadows other routes
    app.include_router(files.router, prefix="/api", tags=["Files"])
    app.include_router(shortlinks.router, prefix="/api", tags=["Shortlinks"])
    app.include_router(rate_limit.router, prefix="/api", tags=["Rate Limit"])
    app.include_router(public.router, tags=["Public"])

    return app


app = create_app()
