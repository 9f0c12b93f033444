"""
API依赖项 - 应用服务装配
"""
from fastapi import Depends

from application.ports.storage import BlobStoragePort
from application.services.access_resolver import AccessResolver
from application.services.shared_file_service import SharedFileApplicationService
from core.config import settings
from domain.shared_file import LinkVariant, PasswordHasher, SlugPolicy
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from infrastructure.external.storage import get_storage
from infrastructure.adapters.storage_port import StorageProviderPortAdapter


def get_slug_policy() -> SlugPolicy:
    share = settings.share
    return SlugPolicy(
        variant=LinkVariant(share.link_variant),
        max_attempts=share.slug_max_attempts,
    )


def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=settings.share.bcrypt_rounds)


def build_shared_file_service(storage: BlobStoragePort) -> SharedFileApplicationService:
    """Wire the lifecycle service from settings (also used by background sweeps)."""
    return SharedFileApplicationService(
        uow_factory=SQLAlchemyUnitOfWork,
        storage=storage,
        slug_policy=get_slug_policy(),
        password_hasher=get_password_hasher(),
        public_base_url=settings.PUBLIC_BASE_URL,
        stored_name_max_attempts=settings.share.stored_name_max_attempts,
        max_file_size=settings.storage.max_file_size,
    )


async def get_storage_port(provider=Depends(get_storage)) -> BlobStoragePort:
    return StorageProviderPortAdapter(provider)


async def get_shared_file_service(
    storage: BlobStoragePort = Depends(get_storage_port),
) -> SharedFileApplicationService:
    return build_shared_file_service(storage)


async def get_access_resolver(
    storage: BlobStoragePort = Depends(get_storage_port),
) -> AccessResolver:
    return AccessResolver(
        uow_factory=SQLAlchemyUnitOfWork,
        storage=storage,
        password_hasher=get_password_hasher(),
        chunk_size=settings.share.download_chunk_size,
    )
