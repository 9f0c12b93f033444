"""Application-owned storage port abstraction (hexagonal architecture).

Defines the minimal methods needed by application use cases so that
the application layer does not depend on infrastructure details.
"""
from __future__ import annotations

from typing import AsyncIterable, AsyncIterator, Optional, Protocol, Union, runtime_checkable
from dataclasses import dataclass


class BlobStorageError(Exception):
    """I/O failure reported by the storage backend."""


class BlobNotFoundError(BlobStorageError):
    """No object is stored under the requested key."""


@dataclass
class SavedBlob:
    key: str
    size: int
    etag: Optional[str] = None
    content_type: Optional[str] = None


@runtime_checkable
class BlobStream(Protocol):
    """Readable stream of an opened blob; callers must ``aclose()`` it."""

    size: Optional[int]

    def __aiter__(self) -> AsyncIterator[bytes]: ...

    async def read(self) -> bytes: ...

    async def aclose(self) -> None: ...


BlobContent = Union[bytes, AsyncIterable[bytes]]


@runtime_checkable
class BlobStoragePort(Protocol):
    @property
    def backend(self) -> str: ...

    async def save(
        self,
        content: BlobContent,
        key: str,
        *,
        size_hint: Optional[int] = None,
        content_type: Optional[str] = None,
    ) -> SavedBlob: ...

    async def open(self, key: str, chunk_size: int = 64 * 1024) -> BlobStream: ...

    async def delete(self, key: str) -> bool: ...

    async def exists(self, key: str) -> bool: ...
