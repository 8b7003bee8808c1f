"""
Photo endpoints - public gallery listing and admin photo management.
"""
from typing import Annotated, Any, Dict, Optional

from annotated_doc import Doc
from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
import structlog

from api.config import settings
from api.dependencies import CurrentUser, DatabaseSession
from api.models.photo import PhotoResponse, PhotoUpdate, photo_payload
from api.services.photo_service import PhotoService

logger = structlog.get_logger()
router = APIRouter()


@router.get(
    "/photos",
    summary="List photos",
    description="List photos newest first, optionally filtered by category.",
    tags=["photos"],
)
async def list_photos(
    db: DatabaseSession,
    category: Annotated[
        Optional[str],
        Query(description="Category name; 全部 means all"),
        Doc("Category filter")
    ] = None,
    limit: Annotated[
        Optional[int],
        Query(ge=1, description="Maximum number of photos"),
        Doc("Result limit")
    ] = None,
) -> Dict[str, Any]:
    photos = await PhotoService.list_photos(db, category=category, limit=limit)
    return {"success": True, "data": photo_payload(photos)}


@router.get(
    "/photos/featured",
    summary="List featured photos",
    tags=["photos"],
)
async def list_featured_photos(db: DatabaseSession) -> Dict[str, Any]:
    photos = await PhotoService.list_featured(db)
    return {"success": True, "data": photo_payload(photos)}


@router.get(
    "/categories",
    summary="List categories",
    description="Category names prefixed with the catch-all 全部.",
    tags=["photos"],
)
async def list_categories(db: DatabaseSession) -> Dict[str, Any]:
    return {"success": True, "data": await PhotoService.list_category_names(db)}


@router.post(
    "/admin/photos",
    status_code=status.HTTP_200_OK,
    summary="Upload photo",
    description="Upload an image, generate its thumbnail and store both with the selected provider.",
    responses={
        400: {"description": "Missing fields, unsupported image or misconfigured storage"},
        401: {"description": "Authentication required"},
        413: {"description": "File too large"},
        500: {"description": "Storage upload failed"},
    },
    tags=["admin"],
)
async def upload_photo(
    db: DatabaseSession,
    user: CurrentUser,
    file: Annotated[Optional[UploadFile], File(), Doc("Image file")] = None,
    title: Annotated[Optional[str], Form(), Doc("Photo title")] = None,
    category: Annotated[Optional[str], Form(), Doc("Comma-separated categories")] = None,
    storage_provider: Annotated[Optional[str], Form(), Doc("local, github or r2")] = None,
    storage_path: Annotated[Optional[str], Form(), Doc("Subfolder within the provider")] = None,
) -> Dict[str, Any]:
    """
    Upload a photo.

    When storage_provider is omitted the storage_provider setting is used,
    falling back to local storage.
    """
    if not file or not title:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File and title are required",
        )

    data = await file.read()
    if len(data) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="File too large",
        )

    photo = await PhotoService.create_photo(
        db,
        data=data,
        original_filename=file.filename or "",
        title=title,
        category=category,
        storage_provider=storage_provider or None,
        storage_path=storage_path or None,
    )

    logger.info("Photo created", photo_id=photo.id, user=user.username)
    return {
        "success": True,
        "data": PhotoResponse.from_photo(photo).model_dump(mode="json", by_alias=True),
    }


@router.patch(
    "/admin/photos/{photo_id}",
    summary="Update photo",
    responses={
        401: {"description": "Authentication required"},
        404: {"description": "Photo not found"},
    },
    tags=["admin"],
)
async def update_photo(
    photo_id: str,
    body: PhotoUpdate,
    db: DatabaseSession,
    user: CurrentUser,
) -> Dict[str, Any]:
    photo = await PhotoService.update_photo(db, photo_id, body)
    return {
        "success": True,
        "data": PhotoResponse.from_photo(photo).model_dump(mode="json", by_alias=True),
    }


@router.delete(
    "/admin/photos/{photo_id}",
    summary="Delete photo",
    description="Remove stored files (best-effort) and the photo record.",
    responses={401: {"description": "Authentication required"}},
    tags=["admin"],
)
async def delete_photo(
    photo_id: str,
    db: DatabaseSession,
    user: CurrentUser,
) -> Dict[str, Any]:
    deleted = await PhotoService.delete_photo(db, photo_id)
    if deleted:
        logger.info("Photo removed", photo_id=photo_id, user=user.username)

    return {"success": True, "message": "Photo deleted successfully"}
