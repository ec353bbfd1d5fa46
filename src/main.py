"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Can create multiple app instances if needed (e.g., for testing)

For local development:
    uvicorn src.main:app --reload
"""

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from . import __version__
from .api.routes import auth, health, live, videos
from .config.settings import Settings, get_settings
from .core.videos.broadcaster import ChangeBroadcaster
from .core.videos.registry import VideoRegistry
from .infrastructure.drive.client import MockDriveBlobStore
from .infrastructure.drive.credentials import MockCredentialProvider
from .infrastructure.mongo.client import MongoConfig, MongoHandle
from .infrastructure.mongo.repository import MockDocumentStore, MongoRecordStore
from .infrastructure.storage.json_store import JsonRecordStore

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the registry stack once per process:
    - JSON store (created empty on first run)
    - document store, if configured; MongoDB connects in the background
      and keeps retrying while unreachable
    - registry facade and broadcaster

    Once MongoDB is reachable the JSON records are synced into it and a
    fresh listing is broadcast.
    """
    settings: Settings = app.state.settings

    logger.info(
        "DriveLink API starting",
        extra={
            "version": __version__,
            "mock_mode": {
                "drive": settings.drive_mock_mode,
                "mongo": settings.mongo_mock_mode,
            }
        }
    )

    # Validate configuration
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    json_store = JsonRecordStore(settings.videos_file_path)
    json_store.ensure_exists()

    mongo_handle: Optional[MongoHandle] = None
    if settings.mongo_mock_mode:
        secondary = MockDocumentStore()
    elif settings.mongodb_uri:
        mongo_handle = MongoHandle(MongoConfig(
            uri=settings.mongodb_uri,
            database=settings.mongodb_database,
            collection=settings.mongodb_collection,
            retry_delay_seconds=settings.mongodb_retry_delay_seconds,
            timeout_ms=settings.mongodb_timeout_ms,
        ))
        secondary = MongoRecordStore(mongo_handle)
    else:
        secondary = None
        logger.info("No document store configured, using JSON store only")

    registry = VideoRegistry(json_store, secondary)
    broadcaster = ChangeBroadcaster(registry, settings.public_base_url)

    app.state.json_store = json_store
    app.state.mongo_handle = mongo_handle
    app.state.registry = registry
    app.state.broadcaster = broadcaster

    if settings.drive_mock_mode:
        app.state.mock_drive = MockDriveBlobStore()
        app.state.mock_credentials = MockCredentialProvider()

    async def sync_and_broadcast() -> None:
        if await registry.sync_primary_to_secondary():
            await broadcaster.broadcast_videos()

    if mongo_handle is not None:
        mongo_handle.set_on_connect(sync_and_broadcast)
        mongo_handle.start()
    elif secondary is not None:
        await sync_and_broadcast()

    yield

    # Shutdown
    if mongo_handle is not None:
        await mongo_handle.close()
    logger.info("DriveLink API shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Tests pass their own Settings; production reads the environment.
    """
    settings = settings or get_settings()

    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Short links for videos hosted on Google Drive.

        ## Viewers

        `GET /get-video/{number}` resolves a short number to the Drive file
        to embed. Raw Drive file IDs from older links resolve directly.

        ## Admin

        1. **Log in**: `POST /login`
        2. **Connect Drive**: `GET /auth/google`
        3. **Manage videos**: `POST /upload`, `GET /admin/videos`,
           `DELETE /delete-video/{identifier}`
        4. **Live updates**: WebSocket `/ws` pushes `videos_updated` events
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    session_secret = settings.session_secret
    if not session_secret:
        logger.warning("SESSION_SECRET not set, using a random secret; sessions won't survive restarts")
        session_secret = secrets.token_urlsafe(32)

    app.add_middleware(
        SessionMiddleware,
        secret_key=session_secret,
        max_age=settings.session_max_age_seconds,
        same_site="lax",
    )

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

    app.include_router(auth.router, tags=["Auth"])
    app.include_router(videos.router, tags=["Videos"])
    app.include_router(live.router, tags=["Live"])

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "DriveLink API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    # Failure bodies from the routes are sent as-is, not wrapped in "detail"
    @app.exception_handler(StarletteHTTPException)
    async def failure_body_handler(request, exc):
        if isinstance(exc.detail, dict):
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.detail,
                headers=getattr(exc, "headers", None),
            )
        return await http_exception_handler(request, exc)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        In production, this prevents stack traces from leaking to clients.
        We log the full error server-side but return a generic message.
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
            content={"success": False, "error": "Internal server error"}
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


# For debugging/development
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
