"""Streaming response helpers for resolved downloads."""
from __future__ import annotations

from typing import AsyncIterator

from fastapi.responses import StreamingResponse

from application.services.access_resolver import ResolvedDownload
from api.utils.headers import build_content_disposition


async def _iterate_and_close(resolved: ResolvedDownload) -> AsyncIterator[bytes]:
    try:
        async for chunk in resolved.stream:
            yield chunk
    finally:
        await resolved.stream.aclose()


def download_response(resolved: ResolvedDownload, mode: str = "inline") -> StreamingResponse:
    """Stream the object with Content-Type, Content-Length and Content-Disposition set."""
    headers = {
        "Content-Disposition": build_content_disposition(mode, resolved.filename),
        "Content-Length": str(resolved.size),
        "Cache-Control": "private, no-store",
        "X-Content-Type-Options": "nosniff",
    }
    return StreamingResponse(
        _iterate_and_close(resolved),
        media_type=resolved.content_type,
        headers=headers,
    )
