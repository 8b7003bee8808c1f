"""
Photo service for the upload, listing and deletion workflows.
"""
import asyncio
import os
import secrets
from typing import List, Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from api.config import settings
from api.models.photo import Category, Photo, PhotoUpdate
from api.services.settings_service import SettingsService
from api.utils.error_handlers import BadRequestError, NotFoundError
from api.utils.image import process_image
from storage import StorageConfigError, UploadFileInput

logger = structlog.get_logger()

ALL_CATEGORIES = "全部"
FEATURED_LIMIT = 6


def generate_filename(original: str) -> str:
    """Random 32-hex-char name keeping the original extension."""
    ext = os.path.splitext(original or "")[1].lower()
    return f"{secrets.token_hex(16)}{ext}"


def parse_categories(raw: Optional[str]) -> List[str]:
    """Split a comma-separated category string, dropping blanks and duplicates."""
    if not raw:
        return []
    names = []
    for name in (part.strip() for part in raw.split(",")):
        if name and name not in names:
            names.append(name)
    return names


def check_storage_path(path: Optional[str]) -> None:
    """
    Reject subfolders that climb out of the provider root.

    Raises:
        BadRequestError: If any segment is ".."
    """
    if path and ".." in path.replace("\\", "/").split("/"):
        raise BadRequestError("Invalid storage path", {"storage_path": path})


class PhotoService:
    """Service for managing photos."""

    @staticmethod
    async def list_photos(
        session: AsyncSession,
        category: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Photo]:
        """List photos newest first, optionally filtered by category name."""
        stmt = select(Photo)

        if category and category != ALL_CATEGORIES:
            stmt = stmt.where(Photo.categories.any(Category.name == category))

        stmt = stmt.order_by(desc(Photo.created_at))
        if limit:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_featured(session: AsyncSession, limit: int = FEATURED_LIMIT) -> List[Photo]:
        stmt = (
            select(Photo)
            .where(Photo.is_featured.is_(True))
            .order_by(desc(Photo.created_at))
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_category_names(session: AsyncSession) -> List[str]:
        result = await session.execute(select(Category.name).order_by(Category.name))
        return [ALL_CATEGORIES, *result.scalars().all()]

    @staticmethod
    async def get_photo(session: AsyncSession, photo_id: str) -> Optional[Photo]:
        return await session.get(Photo, photo_id)

    @staticmethod
    async def _resolve_categories(session: AsyncSession, names: List[str]) -> List[Category]:
        """Fetch categories by name, creating the missing ones."""
        if not names:
            return []

        result = await session.execute(select(Category).where(Category.name.in_(names)))
        existing = {c.name: c for c in result.scalars().all()}

        categories = []
        for name in names:
            category = existing.get(name)
            if category is None:
                category = Category(name=name)
                session.add(category)
            categories.append(category)
        return categories

    @staticmethod
    async def create_photo(
        session: AsyncSession,
        *,
        data: bytes,
        original_filename: str,
        title: str,
        category: Optional[str] = None,
        storage_provider: Optional[str] = None,
        storage_path: Optional[str] = None,
    ) -> Photo:
        """
        Store an uploaded image and its thumbnail, then record it.

        The provider is resolved from current settings unless one is given.
        Storage errors propagate; the caller maps them to a response.

        Raises:
            BadRequestError: If the bytes are not an image or storage_path escapes the root
            StorageConfigError: If the selected provider is misconfigured
            StorageUploadError: If writing to the provider fails
        """
        check_storage_path(storage_path)
        filename = generate_filename(original_filename)
        thumbnail_filename = f"thumb-{filename}"

        try:
            processed = await asyncio.to_thread(
                process_image,
                data,
                settings.THUMBNAIL_MAX_SIZE,
                settings.THUMBNAIL_QUALITY,
            )
        except ValueError as e:
            raise BadRequestError("Uploaded file is not a supported image", {"reason": str(e)}) from e

        provider = await SettingsService.get_storage_provider(session, storage_provider)

        try:
            upload = await provider.upload(
                UploadFileInput(filename=filename, buffer=data, path=storage_path),
                UploadFileInput(filename=thumbnail_filename, buffer=processed.thumbnail, path=storage_path),
            )

            exif = processed.exif
            photo = Photo(
                title=title,
                url=upload.url,
                thumbnail_url=upload.thumbnail_url,
                storage_provider=provider.name,
                storage_key=upload.key,
                thumbnail_key=upload.thumbnail_key,
                width=processed.width,
                height=processed.height,
                size=len(data),
                is_featured=False,
                camera_make=exif.camera_make,
                camera_model=exif.camera_model,
                lens=exif.lens,
                focal_length=exif.focal_length,
                aperture=exif.aperture,
                shutter_speed=exif.shutter_speed,
                iso=exif.iso,
                taken_at=exif.taken_at,
                latitude=exif.latitude,
                longitude=exif.longitude,
                orientation=exif.orientation,
                software=exif.software,
                exif_raw=exif.exif_raw or None,
                categories=await PhotoService._resolve_categories(session, parse_categories(category)),
            )
            session.add(photo)

            try:
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                logger.error("Failed to record photo, removing stored files", key=upload.key)
                await provider.delete(upload.key, upload.thumbnail_key)
                raise
        finally:
            await provider.aclose()

        logger.info(
            "Photo uploaded",
            photo_id=photo.id,
            provider=provider.name,
            key=upload.key,
            size=photo.size,
        )
        return photo

    @staticmethod
    async def update_photo(session: AsyncSession, photo_id: str, update: PhotoUpdate) -> Photo:
        """
        Update title and featured flag.

        Raises:
            NotFoundError: If the photo does not exist
        """
        photo = await session.get(Photo, photo_id)
        if not photo:
            raise NotFoundError("Photo not found", {"id": photo_id})

        if update.title is not None:
            photo.title = update.title
        if update.is_featured is not None:
            photo.is_featured = update.is_featured

        await session.commit()

        result = await session.execute(
            select(Photo).where(Photo.id == photo_id).execution_options(populate_existing=True)
        )
        return result.scalar_one()

    @staticmethod
    async def delete_photo(session: AsyncSession, photo_id: str) -> bool:
        """
        Delete a photo's stored files and then its record.

        File removal is best-effort: storage failures and misconfiguration
        are logged and never stop the record from being deleted.

        Returns:
            True if a record was deleted, False if none existed
        """
        photo = await session.get(Photo, photo_id)
        if not photo:
            return False

        try:
            provider = await SettingsService.get_storage_provider(session, photo.storage_provider)
        except StorageConfigError as e:
            logger.warning(
                "Skipping file deletion, storage provider unavailable",
                photo_id=photo_id,
                provider=photo.storage_provider,
                code=e.code,
            )
        else:
            try:
                result = await provider.delete(photo.storage_key, photo.thumbnail_key)
            finally:
                await provider.aclose()

            if not result.ok:
                logger.warning(
                    "Some files could not be deleted",
                    photo_id=photo_id,
                    provider=photo.storage_provider,
                    statuses={k: v.value for k, v in result.statuses.items()},
                )

        await session.delete(photo)
        await session.commit()

        logger.info("Photo deleted", photo_id=photo_id)
        return True
