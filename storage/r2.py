"""
Cloudflare R2 storage provider.

Works with any S3-compatible object store reachable through a custom endpoint.
"""
import mimetypes
from typing import Optional

import aioboto3
import structlog
from botocore.exceptions import ClientError

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


class R2StorageProvider(StorageProvider):
    """S3-compatible object storage provider."""

    name = "r2"

    def __init__(self, config: StorageConfig, session: Optional[aioboto3.Session] = None):
        """
        Initialize R2 storage provider.

        Args:
            config: Configuration with:
                - r2_bucket: Bucket name
                - r2_endpoint: S3 API endpoint (https://<account>.r2.cloudflarestorage.com)
                - r2_access_key_id: Access key
                - r2_secret_access_key: Secret key
                - r2_public_url: Public bucket or custom domain URL (optional)
                - r2_path: Key prefix within the bucket (optional)
            session: Optional aioboto3 session
        """
        super().__init__(config)
        self.bucket = config.r2_bucket
        self.endpoint_url = config.r2_endpoint.rstrip("/")
        self.public_url = config.r2_public_url.rstrip("/") if config.r2_public_url else None
        self.prefix = (config.r2_path or "").strip("/")
        self._session = session or aioboto3.Session()

    def validate_config(self) -> None:
        config = self.config

        if not config.r2_bucket:
            raise StorageConfigError("R2 bucket is required", "R2_BUCKET_MISSING")

        if not config.r2_endpoint:
            raise StorageConfigError("R2 endpoint is required", "R2_ENDPOINT_MISSING")

        if not (config.r2_access_key_id and config.r2_secret_access_key):
            raise StorageConfigError(
                "R2 access key id and secret access key are required",
                "R2_CREDENTIALS_MISSING",
            )

    def _get_client(self):
        """Create an S3 client context manager."""
        return self._session.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.config.r2_access_key_id,
            aws_secret_access_key=self.config.r2_secret_access_key,
            region_name="auto",
        )

    def _build_key(self, filename: str, subfolder: Optional[str] = None) -> str:
        return join_key(self.prefix, subfolder, filename)

    async def upload(
        self,
        file: UploadFileInput,
        thumbnail: Optional[UploadFileInput] = None,
    ) -> UploadResult:
        items = [file] + ([thumbnail] if thumbnail else [])
        keys = []

        try:
            async with self._get_client() as client:
                for item in items:
                    key = self._build_key(item.filename, item.path)
                    content_type = mimetypes.guess_type(item.filename)[0] or "application/octet-stream"
                    await client.put_object(
                        Bucket=self.bucket,
                        Key=key,
                        Body=item.buffer,
                        ContentType=content_type,
                    )
                    keys.append(key)
        except Exception as e:
            logger.error("R2 upload failed", bucket=self.bucket, filename=file.filename, error=str(e))
            raise StorageUploadError("Failed to upload to R2", "R2_UPLOAD_FAILED", e) from e

        result = UploadResult(url=self.get_url(keys[0]), key=keys[0])
        if thumbnail:
            result.thumbnail_url = self.get_url(keys[1])
            result.thumbnail_key = keys[1]

        logger.info("Stored object in R2", bucket=self.bucket, key=keys[0], thumbnail_key=result.thumbnail_key)
        return result

    async def delete(self, key: str, thumbnail_key: Optional[str] = None) -> DeleteResult:
        result = DeleteResult()
        keys = [k for k in (key, thumbnail_key) if k]

        try:
            async with self._get_client() as client:
                for k in keys:
                    try:
                        await client.delete_object(Bucket=self.bucket, Key=k)
                        result.statuses[k] = DeleteStatus.DELETED
                    except ClientError as e:
                        code = e.response.get("Error", {}).get("Code")
                        if code in ("NoSuchKey", "404"):
                            logger.info("Object not found in R2", key=k)
                            result.statuses[k] = DeleteStatus.NOT_FOUND
                        else:
                            logger.error("Failed to delete from R2", key=k, error=str(e))
                            result.statuses[k] = DeleteStatus.FAILED
        except Exception as e:
            logger.error("Failed to delete from R2", keys=keys, error=str(e))
            for k in keys:
                result.statuses.setdefault(k, DeleteStatus.FAILED)

        return result

    def get_url(self, key: str) -> str:
        if self.public_url:
            return f"{self.public_url}/{key}"
        return f"{self.endpoint_url}/{self.bucket}/{key}"
