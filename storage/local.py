"""
Local filesystem storage provider.
"""
from pathlib import Path
from typing import Optional, Union

import aiofiles
import aiofiles.os
import structlog

from storage.base import (
    DeleteResult,
    DeleteStatus,
    StorageConfig,
    StorageConfigError,
    StorageProvider,
    StorageUploadError,
    UploadFileInput,
    UploadResult,
    join_key,
)

logger = structlog.get_logger()


class LocalStorageProvider(StorageProvider):
    """Stores uploads under a root directory served as static files."""

    name = "local"

    def __init__(self, config: StorageConfig, root: Optional[Union[str, Path]] = None):
        """
        Initialize local storage provider.

        Args:
            config: Configuration with:
                - local_root: Root directory (used when root is not given)
                - local_url_prefix: URL prefix the root is served under
            root: Explicit root directory, overrides config.local_root
        """
        self.root = Path(root) if root is not None else (
            Path(config.local_root) if config.local_root else None
        )
        super().__init__(config)
        self.root = self.root.resolve()
        self.url_prefix = config.local_url_prefix.rstrip("/")

    def validate_config(self) -> None:
        if self.root is None:
            raise StorageConfigError(
                "Local storage requires a root directory",
                "LOCAL_ROOT_MISSING",
            )

    def _resolve_path(self, key: str) -> Path:
        """
        Resolve and validate a key.

        Raises:
            ValueError: If key would escape the root directory
        """
        full_path = (self.root / key).resolve()

        try:
            full_path.relative_to(self.root)
        except ValueError:
            raise ValueError(f"Key '{key}' would escape storage directory")

        if full_path == self.root:
            raise ValueError("Key must name a file")

        return full_path

    async def _write(self, key: str, data: bytes) -> None:
        try:
            full_path = self._resolve_path(key)
        except ValueError as e:
            raise StorageUploadError(str(e), "LOCAL_PATH_INVALID", e) from e

        try:
            await aiofiles.os.makedirs(full_path.parent, exist_ok=True)
            async with aiofiles.open(full_path, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error("Local upload failed", key=key, error=str(e))
            raise StorageUploadError(
                "Failed to write file to local storage",
                "LOCAL_UPLOAD_FAILED",
                e,
            ) from e

    async def upload(
        self,
        file: UploadFileInput,
        thumbnail: Optional[UploadFileInput] = None,
    ) -> UploadResult:
        key = join_key(file.path, file.filename)
        await self._write(key, file.buffer)

        result = UploadResult(url=self.get_url(key), key=key)

        if thumbnail:
            thumb_key = join_key(thumbnail.path, thumbnail.filename)
            await self._write(thumb_key, thumbnail.buffer)
            result.thumbnail_url = self.get_url(thumb_key)
            result.thumbnail_key = thumb_key

        logger.info("Stored file locally", key=key, thumbnail_key=result.thumbnail_key)
        return result

    async def _delete_one(self, key: str) -> DeleteStatus:
        try:
            full_path = self._resolve_path(key)

            if not await aiofiles.os.path.isfile(full_path):
                logger.info("File not found in local storage", key=key)
                return DeleteStatus.NOT_FOUND

            await aiofiles.os.remove(full_path)
            return DeleteStatus.DELETED
        except FileNotFoundError:
            return DeleteStatus.NOT_FOUND
        except (OSError, ValueError) as e:
            logger.error("Failed to delete local file", key=key, error=str(e))
            return DeleteStatus.FAILED

    async def delete(self, key: str, thumbnail_key: Optional[str] = None) -> DeleteResult:
        result = DeleteResult()
        result.statuses[key] = await self._delete_one(key)

        if thumbnail_key:
            result.statuses[thumbnail_key] = await self._delete_one(thumbnail_key)

        return result

    def get_url(self, key: str) -> str:
        return f"{self.url_prefix}/{key.lstrip('/')}"
