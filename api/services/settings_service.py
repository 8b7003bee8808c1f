"""
Settings service for the admin key/value store.
"""
from typing import Dict, Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from api.config import settings
from api.models.setting import Setting
from storage import StorageProvider, create_storage_provider, storage_config_from_settings

logger = structlog.get_logger()

PUBLIC_DEFAULTS: Dict[str, str] = {
    "site_title": "MO GALLERY",
    "cdn_domain": "",
}

ADMIN_DEFAULTS: Dict[str, str] = {
    "site_title": "",
    "storage_provider": "local",
    "cdn_domain": "",
    "r2_access_key_id": "",
    "r2_secret_access_key": "",
    "r2_bucket": "",
    "r2_endpoint": "",
    "github_token": "",
    "github_repo": "",
    "github_path": "",
}


class SettingsService:
    """Service for reading and writing settings."""

    @staticmethod
    async def get_all(session: AsyncSession, keys: Optional[Iterable[str]] = None) -> Dict[str, str]:
        """Get stored settings, optionally limited to keys."""
        stmt = select(Setting)
        if keys is not None:
            stmt = stmt.where(Setting.key.in_(list(keys)))

        result = await session.execute(stmt)
        return {s.key: s.value for s in result.scalars().all()}

    @staticmethod
    async def get_public(session: AsyncSession) -> Dict[str, str]:
        """Get settings visible without authentication, merged over defaults."""
        stored = await SettingsService.get_all(session, PUBLIC_DEFAULTS.keys())
        return {**PUBLIC_DEFAULTS, **stored}

    @staticmethod
    async def get_admin(session: AsyncSession) -> Dict[str, str]:
        """Get every setting, merged over the admin defaults."""
        stored = await SettingsService.get_all(session)
        return {**ADMIN_DEFAULTS, **stored}

    @staticmethod
    async def update(session: AsyncSession, values: Mapping[str, object]) -> Dict[str, str]:
        """
        Upsert settings; values are stored as strings.

        Returns:
            All stored settings after the update
        """
        for key, value in values.items():
            text = "" if value is None else str(value)
            setting = await session.get(Setting, key)
            if setting:
                setting.value = text
            else:
                session.add(Setting(key=key, value=text))

        await session.commit()
        return await SettingsService.get_all(session)

    @staticmethod
    async def get_storage_provider(
        session: AsyncSession,
        provider_name: Optional[str] = None,
    ) -> StorageProvider:
        """
        Build the storage provider from current settings.

        Settings are read on every call since an admin may switch the
        storage backend at runtime.

        Args:
            session: Database session
            provider_name: Explicit provider, else the storage_provider setting

        Raises:
            StorageConfigError: If the provider is unknown or misconfigured
        """
        stored = await SettingsService.get_all(session)
        config = storage_config_from_settings(
            stored,
            local_root=settings.UPLOAD_DIR,
            local_url_prefix=settings.UPLOAD_URL_PREFIX,
        )
        name = (provider_name or config.provider).strip().lower()

        kwargs = {}
        if name == "github":
            kwargs = {"api_url": settings.GITHUB_API_URL, "timeout": settings.GITHUB_API_TIMEOUT}

        logger.debug("Resolving storage provider", provider=name)
        return create_storage_provider(name, config, **kwargs)
