"""
Configuration management for the MO Gallery API.

Handles application settings with validation and environment-based configuration.
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields in .env file
    )

    # Application
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8787
    API_LOG_LEVEL: str = "info"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///data/gallery.db"

    # Authentication
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    ADMIN_USERNAME: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None

    # Local storage
    UPLOAD_DIR: str = "./public/uploads"
    UPLOAD_URL_PREFIX: str = "/uploads"

    # Image processing
    THUMBNAIL_MAX_SIZE: int = 800
    THUMBNAIL_QUALITY: int = 80
    MAX_UPLOAD_SIZE: int = 50 * 1024 * 1024  # 50MB

    # GitHub storage
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_API_TIMEOUT: Optional[float] = None

    # CORS
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])

    # Monitoring
    ENABLE_METRICS: bool = False

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("UPLOAD_DIR")
    @classmethod
    def ensure_path_exists(cls, v):
        path = Path(v)
        path.mkdir(parents=True, exist_ok=True)
        return str(path)

    @property
    def database_url_async(self) -> str:
        """Convert database URL to async version."""
        if self.DATABASE_URL.startswith("sqlite://"):
            return self.DATABASE_URL.replace("sqlite://", "sqlite+aiosqlite://")
        return self.DATABASE_URL


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
