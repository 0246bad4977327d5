"""
Storage layout for uploaded photos.

    uploads/<category>/<year>/<month>/<day>/<timestamp>-<token>-<name>
    uploads/<category>/<year>/<month>/<day>/thumbnails/thumb-<timestamp>-<token>-<name>

All paths are POSIX and relative to the media root.
"""
import posixpath
import re
import time
import uuid
from typing import NamedTuple, Optional

THUMBNAIL_DIRNAME = "thumbnails"
THUMBNAIL_PREFIX = "thumb-"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")

# Leaves room for the timestamp/token prefix, "thumb-" and the ".partial" write suffix
MAX_NAME_LENGTH = 180


class StoragePaths(NamedTuple):
    storage_dir: str
    thumbnail_dir: str


def derive_storage_paths(category: str, date: str, root: str = "uploads") -> StoragePaths:
    """
    Map (category, YYYY-MM-DD) to the display and thumbnail directories.

    The date is split on its literal dashes with no calendar check; callers
    validate the format first. Directories are not created here.
    """
    year, month, day = (date.split("-", 2) + ["", "", ""])[:3]
    storage_dir = posixpath.join(root, category, year, month, day)
    return StoragePaths(
        storage_dir=storage_dir,
        thumbnail_dir=posixpath.join(storage_dir, THUMBNAIL_DIRNAME),
    )


def sanitize_filename(original_filename: str) -> str:
    """
    Basename of a client-supplied name with anything outside [A-Za-z0-9._-] replaced.

    Names longer than MAX_NAME_LENGTH are shortened, keeping the extension.
    """
    base = original_filename.replace("\\", "/").rsplit("/", 1)[-1]
    cleaned = _UNSAFE_CHARS.sub("_", base).lstrip(".") or "photo"
    if len(cleaned) > MAX_NAME_LENGTH:
        stem, dot, ext = cleaned.rpartition(".")
        if not dot or len(ext) >= MAX_NAME_LENGTH // 2:
            return cleaned[:MAX_NAME_LENGTH]
        cleaned = stem[:MAX_NAME_LENGTH - len(ext) - 1] + "." + ext
    return cleaned


def build_stored_filename(
    original_filename: str,
    timestamp_ms: Optional[int] = None,
    token: Optional[str] = None,
) -> str:
    """
    Storage name: ``<millis>-<8 hex>-<sanitized original>``.

    The random token keeps same-millisecond uploads of one name apart.
    """
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    if token is None:
        token = uuid.uuid4().hex[:8]
    return f"{timestamp_ms}-{token}-{sanitize_filename(original_filename)}"


def thumbnail_filename(filename: str) -> str:
    return f"{THUMBNAIL_PREFIX}{filename}"
