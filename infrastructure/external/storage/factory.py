"""Storage provider factory with registry pattern."""
from typing import Callable, Awaitable
import importlib

from core.logging_config import get_logger
from .base import StorageProvider
from .config import StorageConfig, StorageType
from .exceptions import ConfigurationError

logger = get_logger(__name__)

# Provider builder type
ProviderBuilder = Callable[[StorageConfig], Awaitable[StorageProvider]]

# Global registry for storage providers
_provider_registry: dict[StorageType, ProviderBuilder] = {}


def register_provider(
    storage_type: StorageType,
    builder: ProviderBuilder
) -> None:
    """Register a storage provider builder.

    Args:
        storage_type: Type of storage provider
        builder: Async function to build provider instance
    """
    _provider_registry[StorageType(storage_type)] = builder
    logger.info("Registered storage provider", provider=str(StorageType(storage_type).value))


async def create_provider(config: StorageConfig) -> StorageProvider:
    """Create storage provider instance based on config.

    Args:
        config: Storage configuration

    Returns:
        Configured storage provider instance

    Raises:
        ConfigurationError: If provider type not registered or creation fails
    """
    try:
        storage_type = StorageType(config.type)
    except ValueError as e:
        raise ConfigurationError(
            f"Unsupported storage type '{config.type}'. "
            f"Available: {[t.value for t in StorageType]}"
        ) from e

    if storage_type not in _provider_registry:
        # Try to auto-register built-in providers
        _auto_register_providers()

        if storage_type not in _provider_registry:
            raise ConfigurationError(
                f"Storage provider '{storage_type.value}' not registered. "
                f"Available: {[t.value for t in _provider_registry]}"
            )

    builder = _provider_registry[storage_type]

    try:
        provider = await builder(config)
        logger.info(
            "Created storage provider",
            provider=storage_type.value,
            bucket=config.bucket
        )
        return provider
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(
            "Failed to create storage provider",
            provider=storage_type.value,
            error=str(e)
        )
        raise ConfigurationError(
            f"Failed to create storage provider '{storage_type.value}': {e}"
        ) from e


def _auto_register_providers() -> None:
    """Auto-register built-in storage providers."""
    providers = [
        (StorageType.S3, "infrastructure.external.storage.providers.s3", "build_s3_provider"),
        (StorageType.LOCAL, "infrastructure.external.storage.providers.local", "build_local_provider"),
    ]

    for storage_type, module_path, builder_name in providers:
        if storage_type in _provider_registry:
            continue

        try:
            module = importlib.import_module(module_path)
            builder = getattr(module, builder_name)
            register_provider(storage_type, builder)
        except (ImportError, AttributeError) as e:
            logger.debug("Provider not available", provider=storage_type.value, error=str(e))
