"""Storage data transfer objects."""
from __future__ import annotations

from typing import AsyncIterator, Awaitable, Callable, Optional

from pydantic import BaseModel


class UploadResult(BaseModel):
    """Save operation result."""
    key: str
    size: int
    etag: Optional[str] = None
    content_type: Optional[str] = None


class ObjectStream:
    """Readable stream over an opened object.

    The object is opened before this is returned, so a missing key surfaces
    at open time rather than mid-response. The caller owns ``aclose()``.
    """

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        close: Callable[[], Awaitable[None]],
        *,
        size: Optional[int] = None,
    ):
        self._chunks = chunks
        self._close = close
        self._closed = False
        self.size = size

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._chunks

    async def read(self) -> bytes:
        """Read the remaining bytes and close the stream."""
        try:
            return b"".join([chunk async for chunk in self._chunks])
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._close()

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "ObjectStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
