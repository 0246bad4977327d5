"""
Local filesystem storage for photo files.

Keys are POSIX paths relative to the media root (``uploads/Inventory/2025/01/15/...``).
"""
import logging
import os
import posixpath
import uuid
from pathlib import Path
from typing import Iterator, Optional, Union

from photolog.exceptions import StorageError

logger = logging.getLogger("photolog.storage")


class LocalFileStorage:
    """
    Reads and writes files under a single root directory.

    Writes go to a temporary sibling first and are moved into place with
    ``os.replace`` so a reader never sees a half-written image.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def path_for(self, key: str) -> Path:
        """Absolute path for ``key``. Keys that resolve outside the root are rejected."""
        normalized = posixpath.normpath(key.replace("\\", "/"))
        if normalized.startswith("/") or normalized == ".." or normalized.startswith("../"):
            raise StorageError(f"Invalid storage key: {key}")
        path = (self.root / normalized).resolve()
        if path != self.root and self.root not in path.parents:
            raise StorageError(f"Invalid storage key: {key}")
        return path

    def key_for(self, path: Path) -> str:
        return path.resolve().relative_to(self.root).as_posix()

    def ensure_dir(self, key: str) -> None:
        """Create a directory and its parents; existing directories are fine."""
        try:
            self.path_for(key).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(
                "Directory create failed",
                exc_info=e,
                extra={"event": "storage", "key": key},
            )
            raise StorageError("Failed to prepare storage directory") from e

    def write_bytes(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.partial")
        try:
            with open(tmp_path, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.warning(
                    "Partial file left behind",
                    extra={"event": "storage", "path": str(tmp_path)},
                )
            logger.error(
                "File write failed",
                exc_info=e,
                extra={"event": "storage", "key": key},
            )
            raise StorageError("Failed to write file") from e

    def read_bytes(self, key: str) -> bytes:
        try:
            return self.path_for(key).read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read file: {key}") from e

    def remove(self, key: str) -> None:
        """
        Delete one file.

        Raises:
            FileNotFoundError: the file is already gone
            OSError: the file could not be removed
        """
        self.path_for(key).unlink()

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def modified_at(self, key: str) -> Optional[float]:
        try:
            return self.path_for(key).stat().st_mtime
        except OSError:
            return None

    def iter_files(self, prefix: str) -> Iterator[str]:
        """Yield keys of all regular files under ``prefix``."""
        base = self.path_for(prefix)
        if not base.is_dir():
            return
        for dirpath, _dirnames, filenames in os.walk(base):
            for name in filenames:
                yield self.key_for(Path(dirpath) / name)
