"""
PhotoService against a real SQLite session and a temporary file store.
"""
import asyncio

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from photolog.config import Settings
from photolog.exceptions import (
    DecodeError,
    InvalidFieldError,
    InvalidFileTypeError,
    MissingFieldError,
    NotFoundError,
    PayloadTooLargeError,
    StorageError,
)
from photolog.models.photo import PhotoRecord
from photolog.services.photo import PhotoService
from tests.conftest import make_image_bytes


@pytest.fixture
def service(db_session, storage, transcoder):
    return PhotoService(db_session, storage, transcoder)


async def _row_count(session):
    return (await session.execute(select(func.count()).select_from(PhotoRecord))).scalar_one()


def _cleanup_failures(operation):
    return REGISTRY.get_sample_value(
        "photolog_file_cleanup_failures_total", {"operation": operation}
    ) or 0


async def test_upload_stores_files_and_row(service, storage, db_session):
    raw = make_image_bytes(400, 300, fmt="PNG")
    photo = await service.upload_photo("Inventory", "2025-01-15", raw, "shelf.jpg")

    assert photo.id is not None
    assert photo.filepath == f"uploads/Inventory/2025/01/15/{photo.filename}"
    assert photo.thumbnail_path == f"uploads/Inventory/2025/01/15/thumbnails/thumb-{photo.filename}"
    assert photo.filename.endswith("-shelf.jpg")
    assert photo.dimensions == "400x300"
    assert photo.original_filename == "shelf.jpg"
    assert storage.exists(photo.filepath)
    assert storage.exists(photo.thumbnail_path)
    assert await _row_count(db_session) == 1


async def test_file_size_is_raw_upload_size(service, storage):
    raw = make_image_bytes(3000, 1500, fmt="PNG")
    photo = await service.upload_photo("Inventory", "2025-01-15", raw, "wide.png")

    assert photo.file_size == len(raw)
    assert len(storage.read_bytes(photo.filepath)) != len(raw)


async def test_long_filename_upload(service, storage, db_session):
    name = "a" * 236 + ".jpg"
    photo = await service.upload_photo("Inventory", "2025-01-15", make_image_bytes(10, 10), name)

    assert photo.original_filename == name
    assert photo.filename.endswith(".jpg")
    assert storage.exists(photo.filepath)
    assert storage.exists(photo.thumbnail_path)
    assert await _row_count(db_session) == 1


async def test_upload_png_keeps_name_but_stores_jpeg(service, storage):
    photo = await service.upload_photo("Inventory", "2025-01-15", make_image_bytes(50, 50, fmt="PNG"), "a.png")
    assert photo.filename.endswith(".png")
    assert storage.read_bytes(photo.filepath)[:3] == b"\xff\xd8\xff"


async def test_same_name_twice_gets_distinct_files(service):
    raw = make_image_bytes(20, 20)
    first = await service.upload_photo("Inventory", "2025-01-15", raw, "dup.jpg")
    second = await service.upload_photo("Inventory", "2025-01-15", raw, "dup.jpg")
    assert first.filepath != second.filepath
    assert first.thumbnail_path != second.thumbnail_path


@pytest.mark.parametrize(
    "kwargs,error",
    [
        ({"category": None}, MissingFieldError),
        ({"date": ""}, MissingFieldError),
        ({"date": "2025/01/15"}, InvalidFieldError),
        ({"category": "../x"}, InvalidFieldError),
        ({"file_content": None}, MissingFieldError),
        ({"original_filename": "notes.txt"}, InvalidFileTypeError),
        ({"file_content": b"garbage"}, DecodeError),
        ({"declared_size": 11 * 1024 * 1024}, PayloadTooLargeError),
    ],
)
async def test_rejected_upload_writes_nothing(service, storage, db_session, kwargs, error):
    args = {
        "category": "Inventory",
        "date": "2025-01-15",
        "file_content": make_image_bytes(30, 30),
        "original_filename": "a.jpg",
    }
    args.update(kwargs)
    with pytest.raises(error):
        await service.upload_photo(**args)
    assert list(storage.iter_files("uploads")) == []
    assert await _row_count(db_session) == 0


async def test_unknown_category_rejected_when_configured(db_session, storage, transcoder):
    service = PhotoService(db_session, storage, transcoder, settings=Settings(allowed_categories="Inventory"))
    await service.upload_photo("Inventory", "2025-01-15", make_image_bytes(10, 10), "a.jpg")
    with pytest.raises(InvalidFieldError):
        await service.upload_photo("Other", "2025-01-15", make_image_bytes(10, 10), "a.jpg")


async def test_failed_insert_removes_files(service, storage, db_session, monkeypatch):
    async def broken_flush(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "flush", broken_flush)
    with pytest.raises(StorageError):
        await service.upload_photo("Inventory", "2025-01-15", make_image_bytes(30, 30), "a.jpg")
    assert list(storage.iter_files("uploads")) == []


async def test_list_orders_most_recent_first(service):
    ids = []
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        ids.append((await service.upload_photo("Inventory", "2025-01-15", make_image_bytes(10, 10), name)).id)
        await asyncio.sleep(0.002)

    page = await service.list_photos(page=1, limit=20)
    assert [p.id for p in page.photos] == list(reversed(ids))
    assert page.total == 3
    assert page.totalPages == 1


async def test_list_pagination(service):
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        await service.upload_photo("Inventory", "2025-01-15", make_image_bytes(10, 10), name)

    page = await service.list_photos(page=2, limit=2)
    assert len(page.photos) == 1
    assert page.total == 3
    assert page.totalPages == 2

    beyond = await service.list_photos(page=5, limit=2)
    assert beyond.photos == []
    assert beyond.total == 3


async def test_list_empty(service):
    page = await service.list_photos()
    assert page.photos == []
    assert page.total == 0
    assert page.totalPages == 0


async def test_list_filter_requires_both(service):
    await service.upload_photo("Inventory", "2025-01-15", make_image_bytes(10, 10), "a.jpg")
    await service.upload_photo("Inventory", "2025-01-16", make_image_bytes(10, 10), "b.jpg")
    await service.upload_photo("Shipments", "2025-01-15", make_image_bytes(10, 10), "c.jpg")

    assert (await service.list_photos(category="Inventory", date="2025-01-15")).total == 1
    assert (await service.list_photos(category="Inventory")).total == 3
    assert (await service.list_photos(date="2025-01-15")).total == 3
    assert (await service.list_photos(category="Nothing", date="2025-01-15")).total == 0


async def test_delete_removes_row_and_files(service, storage, db_session):
    photo = await service.upload_photo("Inventory", "2025-01-15", make_image_bytes(10, 10), "a.jpg")
    await service.delete_photo(photo.id)

    assert not storage.exists(photo.filepath)
    assert not storage.exists(photo.thumbnail_path)
    assert await _row_count(db_session) == 0
    with pytest.raises(NotFoundError):
        await service.get_photo(photo.id)


async def test_delete_unknown_id(service):
    with pytest.raises(NotFoundError) as exc:
        await service.delete_photo(9999)
    assert exc.value.message == "Photo not found"


async def test_delete_with_missing_files_still_deletes_row(service, storage, db_session):
    photo = await service.upload_photo("Inventory", "2025-01-15", make_image_bytes(10, 10), "a.jpg")
    storage.remove(photo.filepath)
    storage.remove(photo.thumbnail_path)

    await service.delete_photo(photo.id)
    assert await _row_count(db_session) == 0


async def test_delete_with_unlink_failure_still_deletes_row(service, storage, db_session, monkeypatch):
    photo = await service.upload_photo("Inventory", "2025-01-15", make_image_bytes(10, 10), "a.jpg")
    real_remove = storage.remove

    def flaky_remove(key):
        if key == photo.filepath:
            raise PermissionError("read-only file system")
        real_remove(key)

    monkeypatch.setattr(storage, "remove", flaky_remove)
    before = _cleanup_failures("delete")

    await service.delete_photo(photo.id)

    assert await _row_count(db_session) == 0
    assert storage.exists(photo.filepath)
    assert not storage.exists(photo.thumbnail_path)
    assert _cleanup_failures("delete") == before + 1
