"""SQLAlchemy-backed repository for shared files."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.shared_file import SharedFile, SharedFileRepository
from domain.common.exceptions import (
    SharedFileNotFoundException,
    SlugAlreadyTakenException,
    StoredNameTakenException,
)
from infrastructure.models.shared_file import SharedFileModel


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class SQLAlchemySharedFileRepository(SharedFileRepository):
    """Persist shared file aggregates using SQLAlchemy ORM.

    Every query is restricted to rows whose ``deleted_at`` is NULL.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: SharedFileModel) -> SharedFile:
        return SharedFile(
            id=model.id,
            storage_key=model.storage_key,
            stored_name=model.stored_name,
            display_name=model.display_name,
            slug=model.slug,
            size=model.size or 0,
            content_type=model.content_type,
            password_hash=model.password_hash,
            expires_at=model.expires_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
            deleted_at=model.deleted_at,
        )

    @staticmethod
    def _active():
        return select(SharedFileModel).where(SharedFileModel.deleted_at.is_(None))

    @staticmethod
    def _translate_conflict(exc: IntegrityError, shared_file: SharedFile) -> Exception:
        # 唯一索引冲突：根据索引/列名区分 stored_name 与 slug
        message = str(getattr(exc, "orig", exc))
        if "stored_name" in message:
            return StoredNameTakenException(shared_file.stored_name)
        return SlugAlreadyTakenException(shared_file.slug)

    async def _get_model(self, file_id: int) -> Optional[SharedFileModel]:
        result = await self.session.execute(self._active().where(SharedFileModel.id == file_id))
        return result.scalar_one_or_none()

    async def create(self, shared_file: SharedFile) -> SharedFile:
        model = SharedFileModel(
            storage_key=shared_file.storage_key,
            stored_name=shared_file.stored_name,
            display_name=shared_file.display_name,
            slug=shared_file.slug,
            size=shared_file.size,
            content_type=shared_file.content_type,
            password_hash=shared_file.password_hash,
            expires_at=shared_file.expires_at,
            created_at=shared_file.created_at,
            updated_at=shared_file.updated_at,
        )
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise self._translate_conflict(exc, shared_file) from exc
        await self.session.refresh(model)
        return self._to_entity(model)

    async def update(self, shared_file: SharedFile) -> SharedFile:
        model = await self._get_model(shared_file.id)
        if model is None:
            raise SharedFileNotFoundException(shared_file.id)

        model.display_name = shared_file.display_name
        model.slug = shared_file.slug
        model.password_hash = shared_file.password_hash
        model.expires_at = shared_file.expires_at
        model.updated_at = shared_file.updated_at or datetime.now(timezone.utc)
        model.deleted_at = shared_file.deleted_at

        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise self._translate_conflict(exc, shared_file) from exc
        await self.session.refresh(model)
        return self._to_entity(model)

    async def soft_delete(self, file_id: int) -> None:
        model = await self._get_model(file_id)
        if model is None:
            raise SharedFileNotFoundException(file_id)
        now = datetime.now(timezone.utc)
        model.deleted_at = now
        model.updated_at = now
        await self.session.flush()

    async def get_by_id(self, file_id: int) -> Optional[SharedFile]:
        model = await self._get_model(file_id)
        return self._to_entity(model) if model else None

    async def get_by_slug(self, slug: str) -> Optional[SharedFile]:
        result = await self.session.execute(self._active().where(SharedFileModel.slug == slug))
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_by_display_name(self, display_name: str) -> Optional[SharedFile]:
        result = await self.session.execute(
            self._active()
            .where(SharedFileModel.display_name == display_name)
            .order_by(SharedFileModel.created_at.desc(), SharedFileModel.id.desc())
            .limit(1)
        )
        model = result.scalars().first()
        return self._to_entity(model) if model else None

    async def _exists(self, *conditions, exclude_id: Optional[int] = None) -> bool:
        query = select(SharedFileModel.id).where(SharedFileModel.deleted_at.is_(None), *conditions)
        if exclude_id is not None:
            query = query.where(SharedFileModel.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.first() is not None

    async def exists_by_slug(self, slug: str, *, exclude_id: Optional[int] = None) -> bool:
        return await self._exists(SharedFileModel.slug == slug, exclude_id=exclude_id)

    async def exists_by_display_name(
        self, display_name: str, *, exclude_id: Optional[int] = None
    ) -> bool:
        return await self._exists(SharedFileModel.display_name == display_name, exclude_id=exclude_id)

    async def exists_by_stored_name(self, stored_name: str) -> bool:
        return await self._exists(SharedFileModel.stored_name == stored_name)

    async def list_active(self, now: datetime) -> list[SharedFile]:
        now = _as_utc(now)
        result = await self.session.execute(
            self._active()
            .where(or_(SharedFileModel.expires_at.is_(None), SharedFileModel.expires_at >= now))
            .order_by(SharedFileModel.created_at.desc(), SharedFileModel.id.desc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_expired(self, now: datetime) -> list[SharedFile]:
        now = _as_utc(now)
        result = await self.session.execute(
            self._active()
            .where(SharedFileModel.expires_at.is_not(None), SharedFileModel.expires_at <= now)
            .order_by(SharedFileModel.expires_at.asc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def count(self) -> int:
        result = await self.session.execute(
            select(func.count(SharedFileModel.id)).where(SharedFileModel.deleted_at.is_(None))
        )
        return int(result.scalar_one() or 0)
