"""Pytest bootstrap configuration.

Environment variables are set before any application module is imported,
then in-memory doubles for the unit of work and the blob store are exposed
as fixtures.
"""
import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SHARE__CLEANUP_ENABLED", "false")
os.environ.setdefault("SHARE__BCRYPT_ROUNDS", "4")

import asyncio
from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Optional

import pytest

from application.ports.storage import BlobNotFoundError, BlobStorageError, SavedBlob
from application.services.access_resolver import AccessResolver
from application.services.shared_file_service import SharedFileApplicationService
from domain.common.exceptions import (
    SharedFileNotFoundException,
    SlugAlreadyTakenException,
    StoredNameTakenException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.shared_file import PasswordHasher, SharedFile, SharedFileRepository, SlugPolicy


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class InMemorySharedFileRepository(SharedFileRepository):
    """Dict-backed repository enforcing the same uniqueness rules as the DB."""

    def __init__(self, *, unique_display_name: bool = False):
        self.rows: dict[int, SharedFile] = {}
        self._ids = count(1)
        self._unique_display_name = unique_display_name
        self.fail_next_create: Optional[Exception] = None

    def _live(self):
        return [r for r in self.rows.values() if r.deleted_at is None]

    def _check_conflicts(self, shared_file: SharedFile) -> None:
        for row in self._live():
            if row.id == shared_file.id:
                continue
            if row.slug == shared_file.slug:
                raise SlugAlreadyTakenException(shared_file.slug)
            if self._unique_display_name and row.display_name == shared_file.display_name:
                raise SlugAlreadyTakenException(shared_file.slug)
            if row.stored_name == shared_file.stored_name:
                raise StoredNameTakenException(shared_file.stored_name)

    @staticmethod
    def _copy(row: SharedFile) -> SharedFile:
        return SharedFile(**vars(row))

    async def create(self, shared_file: SharedFile) -> SharedFile:
        if self.fail_next_create is not None:
            exc, self.fail_next_create = self.fail_next_create, None
            raise exc
        self._check_conflicts(shared_file)
        row = self._copy(shared_file)
        row.id = next(self._ids)
        self.rows[row.id] = row
        return self._copy(row)

    async def update(self, shared_file: SharedFile) -> SharedFile:
        if shared_file.id not in self.rows or self.rows[shared_file.id].deleted_at is not None:
            raise SharedFileNotFoundException(shared_file.id)
        self._check_conflicts(shared_file)
        self.rows[shared_file.id] = self._copy(shared_file)
        return self._copy(shared_file)

    async def soft_delete(self, file_id: int) -> None:
        row = self.rows.get(file_id)
        if row is None or row.deleted_at is not None:
            raise SharedFileNotFoundException(file_id)
        row.mark_deleted()

    async def get_by_id(self, file_id: int) -> Optional[SharedFile]:
        row = self.rows.get(file_id)
        if row is None or row.deleted_at is not None:
            return None
        return self._copy(row)

    async def get_by_slug(self, slug: str) -> Optional[SharedFile]:
        for row in self._live():
            if row.slug == slug:
                return self._copy(row)
        return None

    async def get_by_display_name(self, display_name: str) -> Optional[SharedFile]:
        matches = [r for r in self._live() if r.display_name == display_name]
        if not matches:
            return None
        return self._copy(max(matches, key=lambda r: (r.created_at, r.id)))

    async def exists_by_slug(self, slug: str, *, exclude_id: Optional[int] = None) -> bool:
        return any(r.slug == slug and r.id != exclude_id for r in self._live())

    async def exists_by_display_name(self, display_name: str, *, exclude_id: Optional[int] = None) -> bool:
        return any(r.display_name == display_name and r.id != exclude_id for r in self._live())

    async def exists_by_stored_name(self, stored_name: str) -> bool:
        return any(r.stored_name == stored_name for r in self._live())

    async def list_active(self, now: datetime) -> list[SharedFile]:
        rows = [r for r in self._live() if not r.is_expired(now)]
        rows.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return [self._copy(r) for r in rows]

    async def list_expired(self, now: datetime) -> list[SharedFile]:
        return [
            self._copy(r) for r in self._live()
            if r.expires_at is not None and r.expires_at <= now
        ]

    async def count(self) -> int:
        return len(self._live())


class InMemoryUnitOfWork(AbstractUnitOfWork):
    def __init__(self, repository: InMemorySharedFileRepository, *, readonly: bool = False):
        super().__init__(readonly=readonly)
        self.shared_file_repository = repository
        self.commits = 0

    async def commit(self) -> None:
        self.commits += 1
        self._committed = True

    async def rollback(self) -> None:
        self._committed = False


class FakeStream:
    def __init__(self, data: bytes, chunk_size: int):
        self._data = data
        self._chunk_size = chunk_size
        self.size = len(data)
        self.closed = False

    async def _chunks(self):
        for i in range(0, len(self._data), self._chunk_size):
            yield self._data[i:i + self._chunk_size]

    def __aiter__(self):
        return self._chunks()

    async def read(self) -> bytes:
        self.closed = True
        return self._data

    async def aclose(self) -> None:
        self.closed = True


class FakeBlobStorage:
    """Blob store double; yields to the loop while saving so uploads interleave."""

    backend = "memory"

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.fail_delete = False
        self.opened: list[FakeStream] = []

    async def save(self, content, key, *, size_hint=None, content_type=None) -> SavedBlob:
        if isinstance(content, (bytes, bytearray)):
            data = bytes(content)
        else:
            parts = []
            async for chunk in content:
                parts.append(chunk)
                await asyncio.sleep(0)
            data = b"".join(parts)
        await asyncio.sleep(0)
        self.objects[key] = data
        return SavedBlob(key=key, size=len(data), etag=None, content_type=content_type)

    async def open(self, key, chunk_size=64 * 1024) -> FakeStream:
        if key not in self.objects:
            raise BlobNotFoundError(key)
        stream = FakeStream(self.objects[key], chunk_size)
        self.opened.append(stream)
        return stream

    async def delete(self, key) -> bool:
        if self.fail_delete:
            raise BlobStorageError(f"cannot delete {key}")
        return self.objects.pop(key, None) is not None

    async def exists(self, key) -> bool:
        return key in self.objects


def sequential_token_hex():
    """Deterministic stand-in for secrets.token_hex."""
    counter = count(1)

    def token_hex(nbytes: int) -> str:
        return f"{next(counter):0{nbytes * 2}x}"[-nbytes * 2:]

    return token_hex


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def repository():
    return InMemorySharedFileRepository()


@pytest.fixture
def storage():
    return FakeBlobStorage()


@pytest.fixture
def uow_factory(repository):
    def factory(readonly: bool = False):
        return InMemoryUnitOfWork(repository, readonly=readonly)

    return factory


@pytest.fixture
def make_service(uow_factory, storage, hasher, clock):
    def build(**overrides) -> SharedFileApplicationService:
        options = dict(
            slug_policy=SlugPolicy(),
            password_hasher=hasher,
            public_base_url="https://share.example.com",
            clock=clock,
            token_hex=sequential_token_hex(),
        )
        options.update(overrides)
        return SharedFileApplicationService(uow_factory, storage, **options)

    return build


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def resolver(uow_factory, storage, hasher, clock):
    return AccessResolver(uow_factory, storage, hasher, chunk_size=4, clock=clock)

