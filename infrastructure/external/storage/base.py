"""Storage provider protocol definitions."""
from typing import AsyncIterable, Optional, Protocol, Union, runtime_checkable

from .models import ObjectStream, UploadResult

Content = Union[bytes, AsyncIterable[bytes]]


@runtime_checkable
class StorageProvider(Protocol):
    """Byte-blob persistence keyed by an opaque storage key."""

    async def save(
        self,
        content: Content,
        key: str,
        *,
        size_hint: Optional[int] = None,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        """Write the full content under ``key``; partial writes are removed on failure."""
        ...

    async def open(self, key: str, chunk_size: int = 64 * 1024) -> ObjectStream:
        """Open an object for streaming; raises NotFoundError when absent."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete an object; returns False when it was already absent."""
        ...

    async def exists(self, key: str) -> bool:
        """Check if an object exists."""
        ...

    async def health_check(self) -> bool:
        """Check storage connectivity and permissions."""
        ...

    async def close(self) -> None:
        """Release client resources; the provider is unusable afterwards."""
        ...
