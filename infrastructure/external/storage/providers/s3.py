"""AWS S3 (and S3-compatible) storage provider implementation."""
import hashlib
import tempfile
from functools import partial
from typing import Any, Optional

import anyio

from core.logging_config import get_logger
from ..base import Content
from ..config import StorageConfig
from ..models import ObjectStream, UploadResult
from ..exceptions import (
    StorageError,
    NotFoundError,
    PermissionDeniedError,
    TransientError,
    ConfigurationError,
)
from ..utils import iter_content, with_retry

logger = get_logger(__name__)

# Uploads are spooled in memory up to this size, then to a temp file
SPOOL_MAX_MEMORY = 8 * 1024 * 1024


class S3Provider:
    """AWS S3 storage provider.

    boto3 is synchronous, every call goes through ``anyio.to_thread``.
    """

    def __init__(
        self,
        client: Any,  # boto3 S3 client
        config: StorageConfig
    ):
        """Initialize S3 provider.

        Args:
            client: Boto3 S3 client instance
            config: Storage configuration
        """
        self.client = client
        self.config = config
        self.bucket = config.bucket
        self.region = config.region or "us-east-1"

    async def save(
        self,
        content: Content,
        key: str,
        *,
        size_hint: Optional[int] = None,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        """Upload content to S3.

        Chunks are spooled locally first so boto3 can pick single PUT or
        multipart upload based on the final size.
        """
        hasher = hashlib.md5()
        size = 0
        extra_args = {}
        if content_type:
            extra_args["ContentType"] = content_type

        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_MEMORY) as spool:
            async for chunk in iter_content(content):
                spool.write(chunk)
                hasher.update(chunk)
                size += len(chunk)
            spool.seek(0)

            try:
                await anyio.to_thread.run_sync(
                    partial(
                        self.client.upload_fileobj,
                        spool,
                        self.bucket,
                        key,
                        ExtraArgs=extra_args or None,
                    )
                )
            except Exception as e:
                # A failed multipart upload may leave a partial object behind
                await self._discard(key)
                self._handle_exception(e, f"save {key}")

        logger.info("Saved to S3", key=key, size=size, bucket=self.bucket)
        return UploadResult(
            key=key,
            etag=hasher.hexdigest(),
            size=size,
            content_type=content_type,
        )

    @with_retry()
    async def open(self, key: str, chunk_size: int = 64 * 1024) -> ObjectStream:
        """Open an S3 object for streaming."""
        try:
            response = await anyio.to_thread.run_sync(
                partial(
                    self.client.get_object,
                    Bucket=self.bucket,
                    Key=key
                )
            )
        except Exception as e:
            self._handle_exception(e, f"open {key}")

        body = response["Body"]

        async def chunks():
            try:
                while True:
                    chunk = await anyio.to_thread.run_sync(
                        partial(body.read, chunk_size)
                    )
                    if not chunk:
                        break
                    yield chunk
            except StorageError:
                raise
            except Exception as e:
                self._handle_exception(e, f"read {key}")

        async def close() -> None:
            # Release the pooled connection even if the stream was not drained
            try:
                await anyio.to_thread.run_sync(body.close)
            except Exception as e:
                logger.debug("Failed to close S3 body", key=key, error=str(e))

        return ObjectStream(chunks(), close, size=response.get("ContentLength"))

    @with_retry()
    async def delete(self, key: str) -> bool:
        """Delete object from S3; a missing object is not an error."""
        try:
            await anyio.to_thread.run_sync(
                partial(
                    self.client.delete_object,
                    Bucket=self.bucket,
                    Key=key
                )
            )
        except Exception as e:
            if self._error_code(e) in ("NoSuchKey", "404"):
                logger.debug("S3 object already absent", key=key)
                return False
            self._handle_exception(e, f"delete {key}")
        logger.info("Deleted from S3", key=key)
        return True

    async def exists(self, key: str) -> bool:
        """Check if object exists in S3; any failure reads as absent."""
        try:
            await anyio.to_thread.run_sync(
                partial(
                    self.client.head_object,
                    Bucket=self.bucket,
                    Key=key
                )
            )
            return True
        except Exception as e:
            logger.debug("S3 head_object failed", key=key, error=str(e))
            return False

    async def health_check(self) -> bool:
        """Check S3 connectivity."""
        try:
            await anyio.to_thread.run_sync(
                partial(
                    self.client.head_bucket,
                    Bucket=self.bucket
                )
            )
            logger.info("S3 health check passed", bucket=self.bucket)
            return True
        except Exception as e:
            logger.error("S3 health check failed", bucket=self.bucket, error=str(e))
            return False

    async def close(self) -> None:
        """Close the boto3 client and its connection pool."""
        try:
            await anyio.to_thread.run_sync(self.client.close)
        except Exception as e:
            logger.warning("Failed to close S3 client", bucket=self.bucket, error=str(e))

    async def _discard(self, key: str) -> None:
        try:
            await anyio.to_thread.run_sync(
                partial(self.client.delete_object, Bucket=self.bucket, Key=key)
            )
        except Exception as e:
            logger.warning("Failed to remove partial S3 object", key=key, error=str(e))

    @staticmethod
    def _error_code(e: Exception) -> str:
        response = getattr(e, "response", None) or {}
        return str((response.get("Error") or {}).get("Code", ""))

    def _handle_exception(self, e: Exception, operation: str) -> None:
        """Map S3 exceptions to storage exceptions."""
        error_code = self._error_code(e)

        if error_code in ["NoSuchKey", "404", "NotFound"]:
            raise NotFoundError(f"Object not found: {operation}") from e
        elif error_code in ["AccessDenied", "403"]:
            raise PermissionDeniedError(f"Access denied: {operation}") from e
        elif error_code in ["RequestTimeout", "SlowDown", "ServiceUnavailable", "InternalError"]:
            raise TransientError(f"Transient error: {operation}: {e}") from e
        else:
            raise StorageError(f"S3 error during {operation}: {e}") from e


async def build_s3_provider(config: StorageConfig) -> S3Provider:
    """Build S3 storage provider.

    Args:
        config: Storage configuration

    Returns:
        Configured S3 provider instance
    """
    if not config.bucket:
        raise ConfigurationError("S3 bucket name is required")

    import boto3
    from botocore.config import Config as BotoConfig

    # Build boto3 client config
    boto_kwargs = {
        "region_name": config.region,
        "signature_version": "s3v4",
        "retries": {
            "max_attempts": config.max_retry_attempts,
            "mode": "standard"
        },
        "connect_timeout": config.timeout,
        "read_timeout": config.timeout,
    }
    if config.use_path_style:
        # MinIO and most self-hosted S3 endpoints need path-style addressing
        boto_kwargs["s3"] = {"addressing_style": "path"}
    boto_config = BotoConfig(**boto_kwargs)

    # Build client arguments
    client_args = {
        "service_name": "s3",
        "config": boto_config
    }

    if config.aws_access_key_id and config.aws_secret_access_key:
        client_args.update({
            "aws_access_key_id": config.aws_access_key_id,
            "aws_secret_access_key": config.aws_secret_access_key
        })

    if config.endpoint:
        client_args["endpoint_url"] = config.endpoint
        client_args["use_ssl"] = config.enable_ssl

    # Create client
    client = boto3.client(**client_args)

    # Create and return provider
    provider = S3Provider(client, config)

    # Check connectivity
    if not await provider.health_check():
        raise ConfigurationError("Failed to connect to S3")

    return provider
