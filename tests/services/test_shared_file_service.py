import asyncio
from datetime import timedelta

import pytest

from application.dto import UpdateSharedFileDTO
from application.ports.storage import BlobStorageError
from application.services.shared_file_service import SharedFileApplicationService
from application.utils.storage import build_stored_name
from domain.common.exceptions import (
    DomainValidationException,
    FileTooLargeException,
    InvalidSlugException,
    SharedFileExpiredException,
    SharedFileNotFoundException,
    SlugAlreadyTakenException,
    SlugGenerationExhaustedException,
)
from domain.shared_file import LinkVariant, SlugPolicy
from infrastructure.adapters.storage_port import StorageProviderPortAdapter
from infrastructure.external.storage.config import StorageConfig
from infrastructure.external.storage.providers.local import LocalProvider


async def _chunks(*parts):
    for part in parts:
        yield part


@pytest.mark.asyncio
async def test_upload_creates_record_and_object(service, storage, repository):
    dto = await service.upload(b"quarterly numbers", "Q4 Report.pdf", slug="q4-report")

    assert dto.slug == "q4-report"
    assert dto.display_name == "Q4 Report.pdf"
    assert dto.size == len(b"quarterly numbers")
    assert dto.content_type == "application/pdf"
    assert dto.has_password is False
    assert dto.share_url == "https://share.example.com/s/q4-report"
    assert dto.download_url == "https://share.example.com/d/q4-report"
    assert dto.stored_name.endswith(".pdf")
    assert storage.objects[dto.stored_name] == b"quarterly numbers"
    assert await repository.count() == 1


@pytest.mark.asyncio
async def test_upload_streams_chunks_and_derives_slug(service, storage):
    dto = await service.upload(_chunks(b"abc", b"def"), "My Vacation Photos.png")
    assert dto.slug == "my-vacation-photos"
    assert dto.size == 6
    assert storage.objects[dto.stored_name] == b"abcdef"


@pytest.mark.asyncio
async def test_upload_strips_client_paths(service):
    dto = await service.upload(b"x", "C:\\Users\\me\\notes.txt")
    assert dto.display_name == "notes.txt"


@pytest.mark.asyncio
async def test_upload_requires_filename(service, storage):
    with pytest.raises(DomainValidationException):
        await service.upload(b"x", "   ")
    assert storage.objects == {}


@pytest.mark.asyncio
async def test_duplicate_custom_slug_is_rejected_before_saving(service, storage):
    await service.upload(b"one", "report.pdf", slug="q4-report")
    with pytest.raises(SlugAlreadyTakenException):
        await service.upload(b"two", "other.pdf", slug="q4-report")
    assert len(storage.objects) == 1


@pytest.mark.asyncio
async def test_invalid_slug_leaves_no_trace(service, storage, repository):
    with pytest.raises(InvalidSlugException):
        await service.upload(b"data", "report.pdf", slug="Bad Slug")
    assert storage.objects == {}
    assert repository.rows == {}


@pytest.mark.asyncio
async def test_concurrent_uploads_with_same_slug(service, storage, repository):
    results = await asyncio.gather(
        service.upload(_chunks(b"a", b"b"), "one.txt", slug="demo"),
        service.upload(_chunks(b"c", b"d"), "two.txt", slug="demo"),
        return_exceptions=True,
    )
    created = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]

    assert len(created) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], SlugAlreadyTakenException)
    assert list(storage.objects) == [created[0].stored_name]
    assert await repository.count() == 1


@pytest.mark.asyncio
async def test_failed_insert_removes_saved_object(service, storage, repository):
    repository.fail_next_create = RuntimeError("database unavailable")
    with pytest.raises(RuntimeError):
        await service.upload(b"data", "report.pdf")
    assert storage.objects == {}


@pytest.mark.asyncio
async def test_password_is_hashed(service, repository, hasher):
    dto = await service.upload(b"secret", "plan.txt", password="hunter2")
    assert dto.has_password is True
    row = repository.rows[dto.id]
    assert row.password_hash != "hunter2"
    assert hasher.verify("hunter2", row.password_hash)


@pytest.mark.asyncio
async def test_overlong_password_is_rejected(service, storage):
    with pytest.raises(DomainValidationException):
        await service.upload(b"x", "a.txt", password="p" * 73)
    assert storage.objects == {}


@pytest.mark.asyncio
async def test_size_limit(make_service, storage):
    service = make_service(max_file_size=4)
    with pytest.raises(FileTooLargeException):
        await service.upload(_chunks(b"123", b"45"), "big.bin")
    with pytest.raises(FileTooLargeException):
        await service.upload(b"x", "big.bin", size_hint=10)
    assert storage.objects == {}
    dto = await service.upload(b"1234", "ok.bin")
    assert dto.size == 4


@pytest.mark.asyncio
async def test_stored_name_generation_is_bounded(make_service):
    service = make_service(token_hex=lambda nbytes: "ab" * nbytes, stored_name_max_attempts=3)
    await service.upload(b"1", "first.txt", slug="first")
    with pytest.raises(SlugGenerationExhaustedException) as exc_info:
        await service.upload(b"2", "second.txt", slug="second")
    assert exc_info.value.details["what"] == "stored name"


@pytest.mark.asyncio
async def test_filename_variant_uses_name_as_link(make_service):
    service = make_service(slug_policy=SlugPolicy(variant=LinkVariant.FILENAME))
    first = await service.upload(b"1", "My Vacation Photos.png")
    second = await service.upload(b"2", "My Vacation Photos.png")

    assert first.slug == first.display_name == "my-vacation-photos.png"
    assert second.slug == second.display_name
    assert second.slug.startswith("my-vacation-photos-")
    assert second.slug.endswith(".png")


@pytest.mark.asyncio
async def test_expired_files_are_hidden(service, clock):
    dto = await service.upload(b"x", "a.txt", slug="soon", expires_at=clock.now + timedelta(hours=1))
    await service.upload(b"y", "b.txt", slug="forever")

    clock.advance(hours=1)
    assert (await service.get(dto.id)).is_expired is False
    assert {f.slug for f in await service.list_files()} == {"soon", "forever"}

    clock.advance(seconds=1)
    with pytest.raises(SharedFileExpiredException):
        await service.get(dto.id)
    with pytest.raises(SharedFileExpiredException):
        await service.get_by_slug("soon")
    assert [f.slug for f in await service.list_files()] == ["forever"]


@pytest.mark.asyncio
async def test_lookup_by_slug_and_display_name(service):
    dto = await service.upload(b"x", "Budget.xlsx", slug="budget")
    assert (await service.get_by_slug("budget")).id == dto.id
    assert (await service.get_by_display_name("Budget.xlsx")).id == dto.id
    with pytest.raises(SharedFileNotFoundException):
        await service.get_by_slug("missing")


@pytest.mark.asyncio
async def test_update_password_and_slug(service):
    dto = await service.upload(b"x", "a.txt", slug="alpha")
    await service.upload(b"y", "b.txt", slug="beta")

    updated = await service.update(dto.id, UpdateSharedFileDTO(password="pw", slug="gamma"))
    assert updated.has_password is True
    assert updated.slug == "gamma"
    assert updated.share_url.endswith("/s/gamma")

    cleared = await service.update(dto.id, UpdateSharedFileDTO(password=""))
    assert cleared.has_password is False
    assert cleared.slug == "gamma"

    with pytest.raises(SlugAlreadyTakenException):
        await service.update(dto.id, UpdateSharedFileDTO(slug="beta"))
    with pytest.raises(InvalidSlugException):
        await service.update(dto.id, UpdateSharedFileDTO(slug="Nope!"))

    same = await service.update(dto.id, UpdateSharedFileDTO(slug="gamma"))
    assert same.slug == "gamma"


@pytest.mark.asyncio
async def test_update_expiry(service, clock):
    dto = await service.upload(b"x", "a.txt")
    new_expiry = clock.now + timedelta(days=7)
    updated = await service.update(dto.id, UpdateSharedFileDTO(expires_at=new_expiry))
    assert updated.expires_at == new_expiry


@pytest.mark.asyncio
async def test_update_expired_or_missing_file(service, clock):
    dto = await service.upload(b"x", "a.txt", expires_at=clock.now)
    clock.advance(minutes=1)
    with pytest.raises(SharedFileExpiredException):
        await service.update(dto.id, UpdateSharedFileDTO(password="pw"))
    with pytest.raises(SharedFileNotFoundException):
        await service.update(999, UpdateSharedFileDTO(password="pw"))


@pytest.mark.asyncio
async def test_delete_removes_object_and_record(service, storage):
    dto = await service.upload(b"x", "a.txt", slug="gone")
    await service.delete(dto.id)

    assert storage.objects == {}
    with pytest.raises(SharedFileNotFoundException):
        await service.get(dto.id)
    with pytest.raises(SharedFileNotFoundException):
        await service.delete(dto.id)

    again = await service.upload(b"y", "a.txt", slug="gone")
    assert again.slug == "gone"


@pytest.mark.asyncio
async def test_delete_works_on_expired_files(service, clock, storage):
    dto = await service.upload(b"x", "a.txt", expires_at=clock.now)
    clock.advance(days=1)
    await service.delete(dto.id)
    assert storage.objects == {}


@pytest.mark.asyncio
async def test_delete_keeps_record_when_storage_fails(service, storage):
    dto = await service.upload(b"x", "a.txt")
    storage.fail_delete = True
    with pytest.raises(BlobStorageError):
        await service.delete(dto.id)
    assert (await service.get(dto.id)).id == dto.id


@pytest.mark.asyncio
async def test_cleanup_purges_only_expired(service, clock, storage, repository):
    await service.upload(b"1", "a.txt", slug="a", expires_at=clock.now + timedelta(minutes=5))
    await service.upload(b"2", "b.txt", slug="b", expires_at=clock.now + timedelta(minutes=10))
    keep = await service.upload(b"3", "c.txt", slug="c")

    clock.advance(minutes=30)
    report = await service.cleanup_expired()

    assert (report.scanned, report.purged, report.failures) == (2, 2, 0)
    assert list(storage.objects) == [keep.stored_name]
    assert await repository.count() == 1

    empty = await service.cleanup_expired()
    assert (empty.scanned, empty.purged) == (0, 0)


@pytest.mark.asyncio
async def test_cleanup_continues_when_blob_delete_fails(service, clock, storage, repository):
    await service.upload(b"1", "a.txt", expires_at=clock.now)
    await service.upload(b"2", "b.txt", expires_at=clock.now)
    storage.fail_delete = True
    clock.advance(seconds=1)

    report = await service.cleanup_expired()

    assert (report.scanned, report.purged, report.failures) == (2, 2, 2)
    assert await repository.count() == 0


def test_stored_name_drops_overlong_extensions():
    assert build_stored_name("report.PDF", "ab12") == "ab12.pdf"
    assert build_stored_name("report." + "b" * 240, "ab12") == "ab12"
    assert build_stored_name("archive.tar.gz", "ab12") == "ab12.gz"


@pytest.mark.asyncio
async def test_upload_with_overlong_extension_on_local_disk(uow_factory, hasher, clock, tmp_path):
    provider = LocalProvider(StorageConfig(type="local", local_base_path=str(tmp_path)))
    service = SharedFileApplicationService(
        uow_factory,
        StorageProviderPortAdapter(provider),
        password_hasher=hasher,
        clock=clock,
    )
    name = "report." + "b" * 240

    dto = await service.upload(b"x", name)

    assert dto.display_name == name
    assert dto.slug == "report"
    assert "." not in dto.stored_name
    assert (tmp_path / dto.stored_name).read_bytes() == b"x"


@pytest.mark.asyncio
async def test_cleanup_purges_rows_expiring_exactly_now(service, clock, repository):
    dto = await service.upload(b"1", "a.txt", expires_at=clock.now)
    assert (await service.get(dto.id)).is_expired is False

    report = await service.cleanup_expired()

    assert (report.scanned, report.purged) == (1, 1)
    assert await repository.count() == 0
