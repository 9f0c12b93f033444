"""Public access checks: identifier lookup, expiry and password gate, stream open."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import anyio

from domain.shared_file import PasswordHasher, SharedFile
from domain.shared_file.entity import utcnow
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.common.exceptions import (
    InvalidPasswordException,
    PasswordRequiredException,
    SharedFileExpiredException,
    SharedFileNotFoundException,
    StoredObjectMissingException,
)
from application.ports.storage import BlobNotFoundError, BlobStoragePort, BlobStream
from core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ResolvedDownload:
    """A granted download: the record plus an opened stream the caller must close."""

    file: SharedFile
    stream: BlobStream

    @property
    def filename(self) -> str:
        return self.file.display_name

    @property
    def content_type(self) -> str:
        return self.file.content_type or "application/octet-stream"

    @property
    def size(self) -> int:
        if self.stream.size is not None:
            return self.stream.size
        return self.file.size


class AccessResolver:
    """Turns a public identifier plus optional password into a download.

    Lookup tries the slug first and falls back to the display name. Checks
    run in a fixed order: existence, expiry, then the password gate.
    """

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        storage: BlobStoragePort,
        password_hasher: Optional[PasswordHasher] = None,
        *,
        chunk_size: int = 64 * 1024,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._uow_factory = uow_factory
        self._storage = storage
        self._hasher = password_hasher or PasswordHasher()
        self._chunk_size = chunk_size
        self._clock = clock

    async def _find(self, identifier: str) -> SharedFile:
        async with self._uow_factory(readonly=True) as uow:
            repo = uow.shared_file_repository
            shared_file = await repo.get_by_slug(identifier)
            if shared_file is None:
                shared_file = await repo.get_by_display_name(identifier)
        if shared_file is None:
            raise SharedFileNotFoundException(slug=identifier)
        return shared_file

    async def _check(self, shared_file: SharedFile, password: Optional[str]) -> SharedFile:
        if shared_file.is_expired(self._clock()):
            raise SharedFileExpiredException(shared_file.id)
        if not shared_file.has_password():
            return shared_file
        if not password:
            raise PasswordRequiredException(shared_file.slug)
        matched = await anyio.to_thread.run_sync(
            self._hasher.verify, password, shared_file.password_hash
        )
        if not matched:
            logger.info("share_password_rejected", file_id=shared_file.id, slug=shared_file.slug)
            raise InvalidPasswordException()
        return shared_file

    async def _open(self, shared_file: SharedFile) -> ResolvedDownload:
        try:
            stream = await self._storage.open(shared_file.storage_key, self._chunk_size)
        except BlobNotFoundError as exc:
            logger.error(
                "stored_object_missing",
                file_id=shared_file.id,
                storage_key=shared_file.storage_key,
            )
            raise StoredObjectMissingException(shared_file.id, shared_file.storage_key) from exc
        return ResolvedDownload(file=shared_file, stream=stream)

    async def verify_access(self, identifier: str, password: Optional[str] = None) -> SharedFile:
        """Run every access check without opening the object."""
        return await self._check(await self._find(identifier), password)

    async def resolve(self, identifier: str, password: Optional[str] = None) -> ResolvedDownload:
        shared_file = await self.verify_access(identifier, password)
        return await self._open(shared_file)

    async def resolve_by_id(self, file_id: int, password: Optional[str] = None) -> ResolvedDownload:
        """Admin download by record id, honouring the same gate."""
        async with self._uow_factory(readonly=True) as uow:
            shared_file = await uow.shared_file_repository.get_by_id(file_id)
        if shared_file is None:
            raise SharedFileNotFoundException(file_id)
        return await self._open(await self._check(shared_file, password))
