"""Application layer orchestration for the shared file lifecycle (application/services)."""
from __future__ import annotations

import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Optional
from urllib.parse import quote

import anyio

from domain.shared_file import (
    PasswordHasher,
    SharedFile,
    SharedFileRepository,
    SlugPolicy,
    SlugService,
)
from domain.shared_file.entity import utcnow
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.common.exceptions import (
    DomainValidationException,
    FileTooLargeException,
    PasswordHashingException,
    SharedFileExpiredException,
    SharedFileNotFoundException,
    SlugGenerationExhaustedException,
)
from application.dto import SharedFileDTO, UpdateSharedFileDTO
from application.ports.storage import BlobContent, BlobStoragePort, BlobStorageError
from application.utils.storage import build_stored_name, guess_content_type
from core.logging_config import get_logger

logger = get_logger(__name__)

STORED_NAME_TOKEN_BYTES = 16


@dataclass
class CleanupReport:
    scanned: int = 0
    purged: int = 0
    failures: int = 0


def _as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class SharedFileApplicationService:
    """Upload, query, update, delete and sweep shared files.

    Bytes are always written before the row, so a live row always has its
    object; a failure after the bytes are saved removes them again before
    the error propagates.
    """

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        storage: BlobStoragePort,
        *,
        slug_policy: Optional[SlugPolicy] = None,
        password_hasher: Optional[PasswordHasher] = None,
        public_base_url: Optional[str] = None,
        stored_name_max_attempts: int = 10,
        max_file_size: int = 0,
        clock: Callable[[], datetime] = utcnow,
        token_hex: Callable[[int], str] = secrets.token_hex,
    ):
        self._uow_factory = uow_factory
        self._storage = storage
        self._policy = slug_policy or SlugPolicy()
        self._hasher = password_hasher or PasswordHasher()
        self._public_base_url = (public_base_url or "").rstrip("/")
        self._stored_name_max_attempts = stored_name_max_attempts
        self._max_file_size = max_file_size
        self._clock = clock
        self._token_hex = token_hex

    # ------------------------------------------------------------------
    # DTO helpers
    # ------------------------------------------------------------------
    def _to_dto(self, shared_file: SharedFile) -> SharedFileDTO:
        share_url = download_url = None
        if self._public_base_url:
            token = quote(shared_file.slug, safe="")
            share_url = f"{self._public_base_url}/s/{token}"
            download_url = f"{self._public_base_url}/d/{token}"
        return SharedFileDTO(
            id=shared_file.id,
            slug=shared_file.slug,
            display_name=shared_file.display_name,
            stored_name=shared_file.stored_name,
            size=shared_file.size,
            content_type=shared_file.content_type,
            has_password=shared_file.has_password(),
            expires_at=shared_file.expires_at,
            is_expired=shared_file.is_expired(self._clock()),
            created_at=shared_file.created_at,
            updated_at=shared_file.updated_at,
            share_url=share_url,
            download_url=download_url,
        )

    def _slugs(self, repository: SharedFileRepository) -> SlugService:
        return SlugService(repository, self._policy, token_hex=self._token_hex)

    def _ensure_live(self, shared_file: Optional[SharedFile], **lookup) -> SharedFile:
        if shared_file is None:
            raise SharedFileNotFoundException(**lookup)
        if shared_file.is_expired(self._clock()):
            raise SharedFileExpiredException(shared_file.id)
        return shared_file

    async def _hash_password(self, password: str) -> str:
        try:
            return await anyio.to_thread.run_sync(self._hasher.hash, password)
        except ValueError as exc:
            raise PasswordHashingException(str(exc)) from exc

    async def _enforce_size(self, content: BlobContent) -> AsyncIterator[bytes]:
        """Pass chunks through, failing once the configured size cap is exceeded."""
        if isinstance(content, (bytes, bytearray, memoryview)):
            content = bytes(content)
            if self._max_file_size and len(content) > self._max_file_size:
                raise FileTooLargeException(len(content), self._max_file_size)
            if content:
                yield content
            return
        total = 0
        async for chunk in content:
            total += len(chunk)
            if self._max_file_size and total > self._max_file_size:
                raise FileTooLargeException(total, self._max_file_size)
            yield chunk

    async def _allocate_stored_name(self, filename: str) -> str:
        async with self._uow_factory(readonly=True) as uow:
            for _ in range(self._stored_name_max_attempts):
                candidate = build_stored_name(filename, self._token_hex(STORED_NAME_TOKEN_BYTES))
                if await uow.shared_file_repository.exists_by_stored_name(candidate):
                    continue
                if await self._storage.exists(candidate):
                    continue
                return candidate
        raise SlugGenerationExhaustedException(
            filename, self._stored_name_max_attempts, what="stored name"
        )

    async def _discard_blob(self, key: str) -> None:
        try:
            await self._storage.delete(key)
        except BlobStorageError as exc:
            logger.warning("orphan_blob_cleanup_failed", storage_key=key, error=str(exc))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def upload(
        self,
        content: BlobContent,
        original_filename: str,
        *,
        content_type: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        password: Optional[str] = None,
        slug: Optional[str] = None,
        size_hint: Optional[int] = None,
    ) -> SharedFileDTO:
        """Store the bytes and create the record with its public link."""
        filename = os.path.basename((original_filename or "").replace("\\", "/")).strip()
        if not filename:
            raise DomainValidationException("File name is required", field="file")

        # 所有校验都在写入任何状态之前完成
        if slug:
            self._policy.validate(slug)
            async with self._uow_factory(readonly=True) as uow:
                await self._slugs(uow.shared_file_repository).check_unique(slug)
        if password:
            self._hasher.validate(password)
        if self._max_file_size and size_hint is not None and size_hint > self._max_file_size:
            raise FileTooLargeException(size_hint, self._max_file_size)

        stored_name = await self._allocate_stored_name(filename)
        content_type = content_type or guess_content_type(filename)
        saved = await self._storage.save(
            self._enforce_size(content),
            stored_name,
            size_hint=size_hint,
            content_type=content_type,
        )

        try:
            password_hash = await self._hash_password(password) if password else None
            now = self._clock()
            async with self._uow_factory() as uow:
                final_slug = await self._slugs(uow.shared_file_repository).resolve(slug, filename)
                entity = SharedFile(
                    id=None,
                    storage_key=saved.key,
                    stored_name=stored_name,
                    display_name=final_slug if self._policy.uses_display_name else filename,
                    slug=final_slug,
                    size=saved.size,
                    content_type=content_type,
                    password_hash=password_hash,
                    expires_at=_as_utc(expires_at),
                    created_at=now,
                    updated_at=now,
                )
                created = await uow.shared_file_repository.create(entity)
        except Exception:
            await self._discard_blob(saved.key)
            raise

        logger.info(
            "shared_file_uploaded",
            file_id=created.id,
            slug=created.slug,
            stored_name=created.stored_name,
            size=created.size,
            protected=created.has_password(),
        )
        return self._to_dto(created)

    async def update(self, file_id: int, changes: UpdateSharedFileDTO) -> SharedFileDTO:
        """Partially update expiry, password or slug."""
        if changes.slug is not None:
            self._policy.validate(changes.slug)
        if changes.password:
            self._hasher.validate(changes.password)

        password_hash = None
        if changes.password:
            password_hash = await self._hash_password(changes.password)

        async with self._uow_factory() as uow:
            repo = uow.shared_file_repository
            entity = self._ensure_live(await repo.get_by_id(file_id), file_id=file_id)

            if changes.expires_at is not None:
                entity.change_expiry(changes.expires_at)
            if changes.password is not None:
                entity.set_password_hash(password_hash)
            if changes.slug is not None and changes.slug != entity.slug:
                await self._slugs(repo).check_unique(changes.slug, exclude_id=entity.id)
                entity.rename_slug(
                    changes.slug,
                    display_name=changes.slug if self._policy.uses_display_name else None,
                )
            updated = await repo.update(entity)

        logger.info(
            "shared_file_updated",
            file_id=file_id,
            fields=sorted(changes.model_dump(exclude_none=True).keys()),
        )
        return self._to_dto(updated)

    async def delete(self, file_id: int) -> None:
        """Remove the object then tombstone the row; expired rows are deletable."""
        async with self._uow_factory() as uow:
            repo = uow.shared_file_repository
            entity = await repo.get_by_id(file_id)
            if entity is None:
                raise SharedFileNotFoundException(file_id)
            await self._storage.delete(entity.storage_key)
            await repo.soft_delete(entity.id)
        logger.info("shared_file_deleted", file_id=file_id, slug=entity.slug)

    async def cleanup_expired(self) -> CleanupReport:
        """Purge every expired row; one failing item never stops the sweep."""
        report = CleanupReport()
        now = self._clock()
        async with self._uow_factory(readonly=True) as uow:
            expired = await uow.shared_file_repository.list_expired(now)
        report.scanned = len(expired)

        for item in expired:
            try:
                await self._storage.delete(item.storage_key)
            except BlobStorageError as exc:
                # 行仍然删除，对象成为可容忍的孤儿
                report.failures += 1
                logger.warning(
                    "expired_blob_delete_failed",
                    file_id=item.id,
                    storage_key=item.storage_key,
                    error=str(exc),
                )
            try:
                async with self._uow_factory() as uow:
                    await uow.shared_file_repository.soft_delete(item.id)
            except SharedFileNotFoundException:
                # 已被并发删除
                continue
            except Exception as exc:
                report.failures += 1
                logger.error("expired_row_delete_failed", file_id=item.id, error=str(exc))
                continue
            report.purged += 1

        if report.scanned:
            logger.info(
                "expired_files_cleaned",
                scanned=report.scanned,
                purged=report.purged,
                failures=report.failures,
            )
        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def get(self, file_id: int) -> SharedFileDTO:
        async with self._uow_factory(readonly=True) as uow:
            entity = await uow.shared_file_repository.get_by_id(file_id)
        return self._to_dto(self._ensure_live(entity, file_id=file_id))

    async def get_by_slug(self, slug: str) -> SharedFileDTO:
        async with self._uow_factory(readonly=True) as uow:
            entity = await uow.shared_file_repository.get_by_slug(slug)
        return self._to_dto(self._ensure_live(entity, slug=slug))

    async def get_by_display_name(self, display_name: str) -> SharedFileDTO:
        async with self._uow_factory(readonly=True) as uow:
            entity = await uow.shared_file_repository.get_by_display_name(display_name)
        return self._to_dto(self._ensure_live(entity, display_name=display_name))

    async def list_files(self) -> list[SharedFileDTO]:
        async with self._uow_factory(readonly=True) as uow:
            items = await uow.shared_file_repository.list_active(self._clock())
        return [self._to_dto(item) for item in items]
