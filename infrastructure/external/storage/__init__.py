"""Blob storage for uploaded files.

Exactly one backend (local disk or S3) is chosen from settings at startup
and kept as a process-wide client; the API reaches it via ``get_storage``.
"""
from typing import Optional
from functools import lru_cache

from core.config import settings
from core.logging_config import get_logger
from .base import StorageProvider
from .config import StorageConfig, StorageType
from .factory import create_provider
from .models import UploadResult, ObjectStream
from .exceptions import (
    StorageError,
    NotFoundError,
    PermissionDeniedError,
    TransientError,
    ConfigurationError,
    ValidationError
)
from .utils import guess_content_type

logger = get_logger(__name__)

_storage_client: Optional[StorageProvider] = None

# Settings fields forwarded to the provider config; the rest (size cap) is app level
_PROVIDER_FIELDS = set(StorageConfig.model_fields)


@lru_cache
def get_storage_config() -> StorageConfig:
    """Provider config derived from ``settings.storage``."""
    values = settings.storage.model_dump(include=_PROVIDER_FIELDS)
    values["type"] = values.get("type") or StorageType.LOCAL
    return StorageConfig(**values)


async def init_storage_client(config: Optional[StorageConfig] = None) -> StorageProvider:
    """Build the configured provider once; later calls return the same instance."""
    global _storage_client

    if _storage_client is not None:
        logger.warning("Storage client already initialized")
        return _storage_client

    config = config or get_storage_config()
    try:
        _storage_client = await create_provider(config)
    except ConfigurationError as e:
        logger.error("Failed to initialize storage client", provider=config.type, error=str(e))
        raise

    logger.info(
        "Storage client initialized",
        provider=config.type,
        bucket=config.bucket,
        base_path=config.local_base_path if config.type == StorageType.LOCAL.value else None,
    )
    return _storage_client


def get_storage_client() -> Optional[StorageProvider]:
    return _storage_client


async def shutdown_storage_client() -> None:
    global _storage_client

    if _storage_client is None:
        return
    client, _storage_client = _storage_client, None
    await client.close()
    logger.info("Storage client shutdown")


async def get_storage() -> StorageProvider:
    """FastAPI dependency returning the active provider.

    Raises:
        RuntimeError: If ``init_storage_client()`` was not awaited at startup
    """
    client = get_storage_client()
    if client is None:
        raise RuntimeError(
            "Storage client not initialized. "
            "Call init_storage_client() during startup."
        )
    return client


__all__ = [
    "init_storage_client",
    "get_storage_client",
    "shutdown_storage_client",
    "get_storage",
    "get_storage_config",
    "StorageConfig",
    "StorageType",
    "StorageProvider",
    "UploadResult",
    "ObjectStream",
    "StorageError",
    "NotFoundError",
    "PermissionDeniedError",
    "TransientError",
    "ConfigurationError",
    "ValidationError",
    "guess_content_type",
]
