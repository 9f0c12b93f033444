"""Infrastructure adapter that implements the application BlobStoragePort
by delegating to the concrete StorageProvider and translating models
and exceptions.
"""
from __future__ import annotations

from typing import Optional

from application.ports.storage import (
    BlobContent,
    BlobNotFoundError,
    BlobStoragePort,
    BlobStorageError,
    BlobStream,
    SavedBlob,
)
from infrastructure.external.storage import (
    NotFoundError,
    StorageError,
    StorageProvider,
)


class StorageProviderPortAdapter(BlobStoragePort):
    def __init__(self, provider: StorageProvider):
        self.provider = provider

    @property
    def backend(self) -> str:
        cfg = getattr(self.provider, "config", None)
        stype = getattr(cfg, "type", None)
        return str(getattr(stype, "value", stype) or "")

    async def save(
        self,
        content: BlobContent,
        key: str,
        *,
        size_hint: Optional[int] = None,
        content_type: Optional[str] = None,
    ) -> SavedBlob:
        try:
            result = await self.provider.save(
                content, key, size_hint=size_hint, content_type=content_type
            )
        except StorageError as exc:
            raise BlobStorageError(str(exc)) from exc
        return SavedBlob(
            key=result.key,
            size=int(result.size or 0),
            etag=result.etag,
            content_type=result.content_type or content_type,
        )

    async def open(self, key: str, chunk_size: int = 64 * 1024) -> BlobStream:
        try:
            return await self.provider.open(key, chunk_size)
        except NotFoundError as exc:
            raise BlobNotFoundError(key) from exc
        except StorageError as exc:
            raise BlobStorageError(str(exc)) from exc

    async def delete(self, key: str) -> bool:
        try:
            return await self.provider.delete(key)
        except StorageError as exc:
            raise BlobStorageError(str(exc)) from exc

    async def exists(self, key: str) -> bool:
        return await self.provider.exists(key)
