"""
Storage module for persisting gallery uploads.

Supports the local filesystem, a GitHub repository served through a CDN,
and Cloudflare R2 / S3-compatible object storage.
"""
from storage.base import (
    DeleteResult,
    DeleteStatus,
    StorageConfig,
    StorageConfigError,
    StorageError,
    StorageProvider,
    StorageUploadError,
    UploadFileInput,
    UploadResult,
)
from storage.factory import create_storage_provider, storage_config_from_settings

__all__ = [
    "DeleteResult",
    "DeleteStatus",
    "StorageConfig",
    "StorageConfigError",
    "StorageError",
    "StorageProvider",
    "StorageUploadError",
    "UploadFileInput",
    "UploadResult",
    "create_storage_provider",
    "storage_config_from_settings",
]
