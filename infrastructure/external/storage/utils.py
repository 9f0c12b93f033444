"""Storage utility functions."""
import mimetypes
from typing import AsyncIterator

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)

from .base import Content
from .exceptions import TransientError


def guess_content_type(filename: str) -> str:
    """Guess content type from filename.

    Args:
        filename: File name or path

    Returns:
        MIME type string
    """
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or "application/octet-stream"


async def iter_content(content: Content) -> AsyncIterator[bytes]:
    """Normalize raw bytes or an async chunk source into an async iterator."""
    if isinstance(content, (bytes, bytearray, memoryview)):
        if content:
            yield bytes(content)
        return
    async for chunk in content:
        if chunk:
            yield chunk


# Retry decorator for transient errors
def with_retry(
    max_attempts: int = 3,
    wait_multiplier: int = 1,
    wait_max: int = 10
):
    """Decorator to retry operations on transient errors.

    Args:
        max_attempts: Maximum number of attempts
        wait_multiplier: Exponential backoff multiplier
        wait_max: Maximum wait time between retries
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=wait_multiplier, max=wait_max),
        retry=retry_if_exception_type(TransientError),
        reraise=True
    )
