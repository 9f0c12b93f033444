"""Local file system storage provider implementation."""
import hashlib
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from core.logging_config import get_logger
from ..base import Content
from ..config import StorageConfig
from ..models import ObjectStream, UploadResult
from ..exceptions import (
    StorageError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError
)
from ..utils import guess_content_type, iter_content

logger = get_logger(__name__)

# In-progress writes land here before being renamed over the final path
PARTIAL_SUFFIX = ".part"


class LocalProvider:
    """Local file system storage provider.

    Objects live under ``base_path`` with the storage key as relative path.
    Writes go to a sibling ``.part`` file and are atomically renamed on
    success, so readers never observe a half-written object.
    """

    def __init__(self, config: StorageConfig):
        """Initialize local storage provider.

        Args:
            config: Storage configuration
        """
        self.config = config
        self.base_path = Path(config.local_base_path).resolve()

        # Ensure base path exists
        self.base_path.mkdir(parents=True, exist_ok=True)

    async def save(
        self,
        content: Content,
        key: str,
        *,
        size_hint: Optional[int] = None,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        """Write content to local storage."""
        file_path = self._safe_path(key)
        tmp_path = file_path.with_name(f"{file_path.name}{PARTIAL_SUFFIX}")
        hasher = hashlib.md5()
        size = 0

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, 'wb') as f:
                async for chunk in iter_content(content):
                    await f.write(chunk)
                    hasher.update(chunk)
                    size += len(chunk)
            await aiofiles.os.replace(tmp_path, file_path)
        except BaseException as e:
            await self._discard(tmp_path)
            if isinstance(e, PermissionError):
                raise PermissionDeniedError(f"Permission denied writing {key}") from e
            if isinstance(e, OSError):
                raise StorageError(f"Failed to save {key}: {e}") from e
            raise

        if size_hint is not None and size_hint != size:
            logger.warning("Saved size differs from hint", key=key, size=size, size_hint=size_hint)

        logger.info("Saved to local storage", key=key, size=size)
        return UploadResult(
            key=key,
            etag=hasher.hexdigest(),
            size=size,
            content_type=content_type or guess_content_type(key),
        )

    async def open(self, key: str, chunk_size: int = 64 * 1024) -> ObjectStream:
        """Open a file for streaming."""
        file_path = self._safe_path(key)
        try:
            f = await aiofiles.open(file_path, 'rb')
        except FileNotFoundError as e:
            raise NotFoundError(f"File not found: {key}") from e
        except IsADirectoryError as e:
            raise NotFoundError(f"File not found: {key}") from e
        except PermissionError as e:
            raise PermissionDeniedError(f"Permission denied reading {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to open {key}: {e}") from e

        try:
            stat = await aiofiles.os.stat(file_path)
            size = stat.st_size
        except OSError:
            size = None

        async def chunks():
            try:
                while True:
                    chunk = await f.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
            except OSError as e:
                raise StorageError(f"Failed to read {key}: {e}") from e

        return ObjectStream(chunks(), f.close, size=size)

    async def delete(self, key: str) -> bool:
        """Delete file from local storage; a missing file is not an error."""
        file_path = self._safe_path(key)
        try:
            await aiofiles.os.remove(file_path)
        except FileNotFoundError:
            logger.debug("Local object already absent", key=key)
            return False
        except PermissionError as e:
            raise PermissionDeniedError(f"Permission denied deleting {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

        logger.info("Deleted from local storage", key=key)
        return True

    async def exists(self, key: str) -> bool:
        """Check if file exists."""
        try:
            return self._safe_path(key).is_file()
        except ValidationError:
            return False
        except OSError as e:
            # ENAMETOOLONG and friends: the key cannot name a stored file
            logger.debug("Local exists check failed", key=key, error=str(e))
            return False

    async def health_check(self) -> bool:
        """Check local storage accessibility."""
        try:
            test_file = self.base_path / ".health_check"
            async with aiofiles.open(test_file, 'w') as f:
                await f.write("ok")
            await aiofiles.os.remove(test_file)
            return True
        except OSError as e:
            logger.error("Local storage health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Nothing to release for plain files."""

    def _safe_path(self, key: str) -> Path:
        """Build safe path preventing directory traversal.

        Args:
            key: Storage key

        Returns:
            Safe absolute path

        Raises:
            ValidationError: If path is unsafe
        """
        # Remove leading slashes and normalize
        clean_key = key.lstrip("/")
        if not clean_key:
            raise ValidationError("Empty storage key")

        # Build path
        path = (self.base_path / clean_key).resolve()

        # Ensure path is within base path (avoid traversal)
        try:
            path.relative_to(self.base_path)
        except ValueError:
            raise ValidationError(f"Invalid path: {key}")
        if path == self.base_path:
            raise ValidationError(f"Invalid path: {key}")

        return path

    async def _discard(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove partial file", path=str(path), error=str(e))


async def build_local_provider(config: StorageConfig) -> LocalProvider:
    """Build local storage provider.

    Args:
        config: Storage configuration

    Returns:
        Configured local provider instance
    """
    provider = LocalProvider(config)

    # Check accessibility
    if not await provider.health_check():
        raise StorageError("Failed to access local storage")

    return provider
