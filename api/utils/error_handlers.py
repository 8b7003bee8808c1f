"""
Centralized exception handling for the API.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import structlog

from storage import StorageConfigError, StorageError

logger = structlog.get_logger()


class GalleryError(Exception):
    """Base exception for application errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(GalleryError):
    """Raised when a requested record does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class BadRequestError(GalleryError):
    """Raised when request content is unusable."""
    status_code = status.HTTP_400_BAD_REQUEST


async def gallery_exception_handler(request: Request, exc: GalleryError) -> JSONResponse:
    """Handle application exceptions."""
    if exc.status_code >= 500:
        logger.error("Gallery error", path=request.url.path, error=exc.message, details=exc.details)

    content: Dict[str, Any] = {"error": exc.message}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
    """
    Handle storage exceptions.

    Misconfiguration is reported to the admin; write failures surface as a
    generic server error.
    """
    if isinstance(exc, StorageConfigError):
        logger.warning("Storage misconfigured", path=request.url.path, code=exc.code, error=exc.message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Storage configuration error", "code": exc.code, "message": exc.message},
        )

    logger.error(
        "Storage error",
        path=request.url.path,
        code=exc.code,
        error=exc.message,
        cause=repr(exc.cause) if exc.cause else None,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "code": exc.code},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTPException as {"error": detail}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid request",
            "details": [
                {"loc": list(err.get("loc", [])), "message": err.get("msg")}
                for err in exc.errors()
            ],
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle anything not caught elsewhere."""
    logger.exception("Unhandled error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )
