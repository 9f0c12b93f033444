from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from domain.common.exceptions import (
    SharedFileNotFoundException,
    SlugAlreadyTakenException,
    StoredNameTakenException,
)
from domain.shared_file import SharedFile
from infrastructure.models import Base
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

NOW = datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db_uow():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    def factory(readonly: bool = False):
        return SQLAlchemyUnitOfWork(session_factory=session_factory, readonly=readonly)

    yield factory
    await engine.dispose()


def _file(slug, *, stored_name=None, display_name=None, expires_at=None, created_at=NOW):
    stored = stored_name or f"{slug}-blob.bin"
    return SharedFile(
        id=None,
        storage_key=stored,
        stored_name=stored,
        display_name=display_name or f"{slug}.bin",
        slug=slug,
        size=3,
        content_type="application/octet-stream",
        expires_at=expires_at,
        created_at=created_at,
        updated_at=created_at,
    )


async def _create(db_uow, shared_file):
    async with db_uow() as uow:
        return await uow.shared_file_repository.create(shared_file)


@pytest.mark.asyncio
async def test_create_and_lookup(db_uow):
    created = await _create(db_uow, _file("alpha", expires_at=NOW + timedelta(days=1)))
    assert created.id is not None

    async with db_uow(readonly=True) as uow:
        repo = uow.shared_file_repository
        by_id = await repo.get_by_id(created.id)
        by_slug = await repo.get_by_slug("alpha")
        assert by_id.slug == by_slug.slug == "alpha"
        assert by_id.expires_at == NOW + timedelta(days=1)
        assert by_id.expires_at.tzinfo is not None
        assert await repo.get_by_slug("beta") is None
        assert await repo.count() == 1


@pytest.mark.asyncio
async def test_display_name_lookup_returns_newest(db_uow):
    await _create(db_uow, _file("one", display_name="report.pdf"))
    newer = await _create(
        db_uow, _file("two", display_name="report.pdf", created_at=NOW + timedelta(minutes=1))
    )
    async with db_uow(readonly=True) as uow:
        found = await uow.shared_file_repository.get_by_display_name("report.pdf")
    assert found.id == newer.id


@pytest.mark.asyncio
async def test_unique_constraints_are_translated(db_uow):
    await _create(db_uow, _file("alpha"))
    with pytest.raises(SlugAlreadyTakenException):
        await _create(db_uow, _file("alpha", stored_name="other.bin"))
    with pytest.raises(StoredNameTakenException):
        await _create(db_uow, _file("beta", stored_name="alpha-blob.bin"))
    async with db_uow(readonly=True) as uow:
        assert await uow.shared_file_repository.count() == 1


@pytest.mark.asyncio
async def test_soft_delete_frees_names(db_uow):
    created = await _create(db_uow, _file("alpha"))
    async with db_uow() as uow:
        await uow.shared_file_repository.soft_delete(created.id)

    async with db_uow(readonly=True) as uow:
        repo = uow.shared_file_repository
        assert await repo.get_by_id(created.id) is None
        assert not await repo.exists_by_slug("alpha")
        assert not await repo.exists_by_stored_name("alpha-blob.bin")

    again = await _create(db_uow, _file("alpha"))
    assert again.id != created.id

    with pytest.raises(SharedFileNotFoundException):
        async with db_uow() as uow:
            await uow.shared_file_repository.soft_delete(created.id)


@pytest.mark.asyncio
async def test_exists_checks_honour_exclusion(db_uow):
    created = await _create(db_uow, _file("alpha", display_name="a.txt"))
    async with db_uow(readonly=True) as uow:
        repo = uow.shared_file_repository
        assert await repo.exists_by_slug("alpha")
        assert not await repo.exists_by_slug("alpha", exclude_id=created.id)
        assert await repo.exists_by_display_name("a.txt")
        assert not await repo.exists_by_display_name("a.txt", exclude_id=created.id)


@pytest.mark.asyncio
async def test_update_persists_changes_and_detects_conflicts(db_uow):
    alpha = await _create(db_uow, _file("alpha"))
    await _create(db_uow, _file("beta"))

    alpha.rename_slug("gamma")
    alpha.set_password_hash("$2b$04$abcdefghijklmnopqrstuv")
    async with db_uow() as uow:
        updated = await uow.shared_file_repository.update(alpha)
    assert updated.slug == "gamma"
    assert updated.has_password()

    updated.rename_slug("beta")
    with pytest.raises(SlugAlreadyTakenException):
        async with db_uow() as uow:
            await uow.shared_file_repository.update(updated)

    async with db_uow(readonly=True) as uow:
        assert (await uow.shared_file_repository.get_by_id(alpha.id)).slug == "gamma"


@pytest.mark.asyncio
async def test_active_and_expired_partition(db_uow):
    await _create(db_uow, _file("past", expires_at=NOW - timedelta(seconds=1)))
    await _create(db_uow, _file("edge", expires_at=NOW, created_at=NOW + timedelta(seconds=1)))
    await _create(db_uow, _file("never", created_at=NOW + timedelta(seconds=2)))

    async with db_uow(readonly=True) as uow:
        repo = uow.shared_file_repository
        active = await repo.list_active(NOW)
        expired = await repo.list_expired(NOW)

    assert [f.slug for f in active] == ["never", "edge"]
    assert [f.slug for f in expired] == ["past", "edge"]
