"""
MO Gallery API - photo gallery backend.

Admin authentication, photo and category management, and pluggable storage
(local disk, GitHub repository via CDN, Cloudflare R2).
"""
from contextlib import asynccontextmanager
from typing import Any, Dict

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.config import settings
from api.models.database import AsyncSessionLocal, init_db
from api.routers import auth, photos, settings as settings_router
from api.services.auth_service import AuthService
from api.utils.error_handlers import (
    GalleryError,
    gallery_exception_handler,
    general_exception_handler,
    http_exception_handler,
    storage_exception_handler,
    validation_exception_handler,
)
from api.utils.logger import setup_logging
from storage import StorageError

# Setup structured logging
setup_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("Starting MO Gallery API", version=settings.VERSION)

    await init_db()

    async with AsyncSessionLocal() as session:
        await AuthService.ensure_admin(session, settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD)

    logger.info(
        "Configuration loaded",
        api_host=settings.API_HOST,
        api_port=settings.API_PORT,
        upload_dir=settings.UPLOAD_DIR,
    )

    yield

    logger.info("Shutting down MO Gallery API")


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="MO Gallery API",
        description="Photo gallery backend with pluggable storage providers",
        version=settings.VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    _configure_middleware(application)
    _configure_exception_handlers(application)
    _configure_routes(application)

    # Local uploads are served straight from the upload directory
    application.mount(
        settings.UPLOAD_URL_PREFIX,
        StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
        name="uploads",
    )

    if settings.ENABLE_METRICS:
        application.mount("/metrics", make_asgi_app())

    return application


def _configure_middleware(application: FastAPI) -> None:
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )


def _configure_exception_handlers(application: FastAPI) -> None:
    """Configure centralized exception handling."""
    application.add_exception_handler(GalleryError, gallery_exception_handler)
    application.add_exception_handler(StorageError, storage_exception_handler)
    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(Exception, general_exception_handler)


def _configure_routes(application: FastAPI) -> None:
    """Configure API routes with prefixes and tags."""
    application.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    application.include_router(photos.router, prefix="/api")
    application.include_router(settings_router.router, prefix="/api/admin/settings", tags=["settings"])


app = create_application()


@app.get("/", tags=["root"], summary="API Information")
async def root() -> Dict[str, Any]:
    """Basic service information."""
    return {
        "message": "MO Gallery API",
        "version": settings.VERSION,
        "status": "running",
    }


def main() -> None:
    """Entry point for running the server."""
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_config=None,  # Use structured logging
        server_header=False,
    )


if __name__ == "__main__":
    main()
