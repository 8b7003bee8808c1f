"""
Factory for creating storage providers.
"""
from typing import Any, Mapping, Optional

from storage.base import StorageConfig, StorageConfigError, StorageProvider

# Persisted setting key -> StorageConfig field
SETTING_KEYS = {
    "storage_provider": "provider",
    "github_token": "github_token",
    "github_repo": "github_repo",
    "github_path": "github_path",
    "github_branch": "github_branch",
    "github_access_method": "github_access_method",
    "github_pages_url": "github_pages_url",
    "r2_access_key_id": "r2_access_key_id",
    "r2_secret_access_key": "r2_secret_access_key",
    "r2_bucket": "r2_bucket",
    "r2_endpoint": "r2_endpoint",
    "r2_public_url": "r2_public_url",
    "r2_path": "r2_path",
}


def storage_config_from_settings(values: Mapping[str, Optional[str]], **overrides: Any) -> StorageConfig:
    """
    Build a StorageConfig from persisted key/value settings.

    Args:
        values: Settings as stored (e.g. {"storage_provider": "github", "github_repo": "o/r"})
        overrides: Extra StorageConfig fields, e.g. local_root

    Returns:
        StorageConfig
    """
    data = {field: values[key] for key, field in SETTING_KEYS.items() if key in values}
    data.update(overrides)
    return StorageConfig(**data)


def create_storage_provider(
    name: Optional[str],
    config: StorageConfig,
    **kwargs: Any,
) -> StorageProvider:
    """
    Create a storage provider from configuration.

    Providers validate their configuration in the constructor, so
    misconfiguration surfaces here rather than at first upload.

    Args:
        name: Provider name (local, github, r2); config.provider when None
        config: Storage configuration
        kwargs: Provider-specific constructor arguments

    Returns:
        Configured StorageProvider instance

    Raises:
        StorageConfigError: If the provider is unknown or config is invalid
    """
    provider = (name or config.provider or "").strip().lower()

    if provider == "local":
        from storage.local import LocalStorageProvider
        return LocalStorageProvider(config, **kwargs)

    elif provider == "github":
        from storage.github import GithubStorageProvider
        return GithubStorageProvider(config, **kwargs)

    elif provider == "r2":
        from storage.r2 import R2StorageProvider
        return R2StorageProvider(config, **kwargs)

    else:
        raise StorageConfigError(
            f"Unknown storage provider: {provider or '<empty>'}",
            "STORAGE_PROVIDER_UNKNOWN",
        )
