"""
FastAPI application entry point.

This module creates and configures the FastAPI application through an
application factory (create_app), so tests can build instances with
their own configuration.

For local development:
    uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import cloud_builder, health, media_store
from .api.routes import settings as settings_routes
from .config.settings import get_settings

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Runs on startup and shutdown. Startup logs the mode the service runs
    in and reports missing configuration.
    """
    settings = get_settings()

    logger.info(
        "Cloud Builder API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "s3": settings.s3_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Cloud Builder API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Upload HTML documents to your own S3 buckets and keep track of them.

        ## Authentication

        All endpoints except health checks require an API key in the
        `X-API-Key` header and the caller's user id in `X-User-Id`.

        ## Workflow

        1. **Save an AWS account**: `PUT /api/v1/settings/aws-accounts`
        2. **Upload**: `POST /api/v1/cloud-builder`
           - Optionally create the bucket on the way (`newBucket: true`)
        3. **Browse**: `GET /api/v1/cloud-builder` (documents) or
           `GET /api/v1/cloud-builder?bucketList` (buckets)
        4. **Edit**: `GET` then `PUT /api/v1/cloud-builder/{id}`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    # Configure allowed origins via CORS_ORIGINS environment variable
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        cloud_builder.router,
        prefix="/api/v1/cloud-builder",
        tags=["Cloud Builder"],
    )

    app.include_router(
        media_store.router,
        prefix="/api/v1/media-store",
        tags=["Media Store"],
    )

    app.include_router(
        settings_routes.router,
        prefix="/api/v1/settings",
        tags=["Settings"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": "Cloud Builder API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        The full error is logged server-side; the client gets a generic
        message without a stack trace.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
