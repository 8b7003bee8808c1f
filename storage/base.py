"""
Abstract base class for storage providers.
"""
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Blank settings fall back to these instead of None
_BLANK_DEFAULTS = {
    "provider": "local",
    "github_path": "uploads",
    "github_branch": "main",
    "github_access_method": "jsdelivr",
    "local_url_prefix": "/uploads",
}


class StorageError(Exception):
    """Storage failure carrying a machine-readable code and optional cause."""

    def __init__(self, message: str, code: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.cause = cause

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} code={self.code} message={self.message!r}>"


class StorageConfigError(StorageError):
    """Raised when provider configuration is missing or malformed."""
    pass


class StorageUploadError(StorageError):
    """Raised when writing to a provider fails."""
    pass


class StorageConfig(BaseModel):
    """Configuration bag for every provider; empty strings count as unset."""

    model_config = ConfigDict(extra="ignore")

    provider: str = "local"

    # GitHub
    github_token: Optional[str] = None
    github_repo: Optional[str] = None
    github_path: str = "uploads"
    github_branch: str = "main"
    github_access_method: str = "jsdelivr"
    github_pages_url: Optional[str] = None

    # Cloudflare R2 / S3-compatible
    r2_access_key_id: Optional[str] = None
    r2_secret_access_key: Optional[str] = None
    r2_bucket: Optional[str] = None
    r2_endpoint: Optional[str] = None
    r2_public_url: Optional[str] = None
    r2_path: Optional[str] = None

    # Local filesystem
    local_root: Optional[str] = None
    local_url_prefix: str = "/uploads"

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_default(cls, v, info):
        if isinstance(v, str) and not v.strip():
            return _BLANK_DEFAULTS.get(info.field_name)
        return v

    @field_validator("provider", "github_access_method", mode="after")
    @classmethod
    def normalize_choice(cls, v):
        return v.strip().lower()


class UploadFileInput(BaseModel):
    """A single blob to upload; path is an optional subfolder."""

    filename: str
    buffer: bytes
    path: Optional[str] = None


class UploadResult(BaseModel):
    """Public URL(s) and backend key(s) for an upload."""

    url: str
    key: str
    thumbnail_url: Optional[str] = None
    thumbnail_key: Optional[str] = None


class DeleteStatus(str, Enum):
    """Outcome of deleting a single key."""
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class DeleteResult(BaseModel):
    """Per-key outcome of a best-effort delete."""

    statuses: Dict[str, DeleteStatus] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True when no key failed; not-found counts as success."""
        return all(s != DeleteStatus.FAILED for s in self.statuses.values())


def join_key(*parts: Optional[str]) -> str:
    """Join parts with '/', trimming their outer slashes and skipping empty ones."""
    joined = "/".join(p.strip("/") for p in parts if p and p.strip("/"))
    return re.sub(r"/+", "/", joined)


class StorageProvider(ABC):
    """Abstract base class for storage providers."""

    name = "unknown"

    def __init__(self, config: StorageConfig):
        """
        Initialize storage provider.

        Args:
            config: Provider configuration

        Raises:
            StorageConfigError: If required configuration is missing
        """
        self.config = config
        self.validate_config()

    @abstractmethod
    def validate_config(self) -> None:
        """
        Check configuration before any I/O.

        Raises:
            StorageConfigError: With a provider-specific code
        """
        pass

    @abstractmethod
    async def upload(
        self,
        file: UploadFileInput,
        thumbnail: Optional[UploadFileInput] = None,
    ) -> UploadResult:
        """
        Store a file and, optionally, its thumbnail.

        The primary file is written first. If the thumbnail write fails the
        error propagates and the primary object stays stored.

        Args:
            file: Primary file
            thumbnail: Optional thumbnail stored alongside

        Returns:
            URLs and keys for everything written

        Raises:
            StorageUploadError: If any write fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str, thumbnail_key: Optional[str] = None) -> DeleteResult:
        """
        Best-effort removal of a file and its thumbnail.

        Never raises. Missing objects are reported as NOT_FOUND, other
        failures are logged and reported as FAILED.

        Args:
            key: Key returned by upload
            thumbnail_key: Thumbnail key returned by upload

        Returns:
            Per-key delete status
        """
        pass

    @abstractmethod
    def get_url(self, key: str) -> str:
        """
        Derive the public URL for a key from static configuration.

        Args:
            key: Key returned by upload

        Returns:
            Public URL
        """
        pass

    async def aclose(self) -> None:
        """Release provider resources."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name}>"
