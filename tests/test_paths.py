import re

from hypothesis import given, strategies as st

from photolog.services.paths import (
    MAX_NAME_LENGTH,
    build_stored_filename,
    derive_storage_paths,
    sanitize_filename,
    thumbnail_filename,
)


def test_derive_storage_paths():
    paths = derive_storage_paths("Inventory", "2025-01-15")
    assert paths.storage_dir == "uploads/Inventory/2025/01/15"
    assert paths.thumbnail_dir == "uploads/Inventory/2025/01/15/thumbnails"


def test_derive_storage_paths_custom_root():
    paths = derive_storage_paths("Receipts", "2024-12-31", root="media")
    assert paths.storage_dir == "media/Receipts/2024/12/31"


def test_derive_storage_paths_does_not_check_calendar():
    paths = derive_storage_paths("Inventory", "2025-13-45")
    assert paths.storage_dir == "uploads/Inventory/2025/13/45"


def test_build_stored_filename():
    name = build_stored_filename("cat.png", timestamp_ms=1700000000000, token="abcdef12")
    assert name == "1700000000000-abcdef12-cat.png"


def test_build_stored_filename_same_name_differs():
    first = build_stored_filename("cat.jpg", timestamp_ms=1)
    second = build_stored_filename("cat.jpg", timestamp_ms=1)
    assert first != second
    assert first.endswith("-cat.jpg")


def test_sanitize_filename():
    assert sanitize_filename("my photo.jpg") == "my_photo.jpg"
    assert sanitize_filename("../../etc/passwd.png") == "passwd.png"
    assert sanitize_filename("C:\\Users\\me\\shot.JPG") == "shot.JPG"
    assert sanitize_filename(".hidden.gif") == "hidden.gif"
    assert sanitize_filename("") == "photo"


def test_thumbnail_filename():
    assert thumbnail_filename("1-abc-cat.jpg") == "thumb-1-abc-cat.jpg"


@given(st.text(max_size=60))
def test_sanitize_filename_is_single_safe_segment(name):
    """Sanitized names never contain separators or leading dots"""
    cleaned = sanitize_filename(name)
    assert cleaned
    assert re.fullmatch(r"[A-Za-z0-9_-][A-Za-z0-9._-]*", cleaned)


def test_sanitize_filename_shortens_long_names():
    cleaned = sanitize_filename("a" * 240 + ".jpg")
    assert len(cleaned) == MAX_NAME_LENGTH
    assert cleaned.endswith(".jpg")
    assert len(sanitize_filename("b" * 300)) == MAX_NAME_LENGTH


def test_stored_names_fit_filesystem_limit():
    stored = build_stored_filename("x" * 250 + ".jpeg", timestamp_ms=1700000000000, token="abcdef12")
    # thumbnail name plus the temporary write suffix
    assert len("." + thumbnail_filename(stored) + ".abcdef12.partial") <= 255
