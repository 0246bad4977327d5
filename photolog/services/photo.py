"""
Photo service: upload, gallery listing and deletion.
"""
import logging
import math
import posixpath
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from photolog.config import Settings, get_settings
from photolog.exceptions import MissingFieldError, NotFoundError, StorageError
from photolog.models.photo import PhotoRecord
from photolog.schemas.photo import PhotoListResponse, PhotoSummary
from photolog.services.paths import (
    build_stored_filename,
    derive_storage_paths,
    thumbnail_filename,
)
from photolog.services.storage import LocalFileStorage
from photolog.services.transcoder import MediaTranscoder
from photolog.services.upload_validation import (
    check_upload_size,
    validate_category_and_date,
    validate_image_filename,
)
from photolog.utils.prometheus_metrics import file_cleanup_failures_total, record_transcode

logger = logging.getLogger("photolog.photo")


class PhotoService:
    """
    Handles photo operations against the metadata table and the file store.

    Upload writes both files before inserting the row; if the insert fails
    the files are removed again. Deletion removes files best-effort, then
    the row, so a filesystem error never blocks metadata cleanup.
    """

    def __init__(
        self,
        db: AsyncSession,
        storage: LocalFileStorage,
        transcoder: Optional[MediaTranscoder] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.storage = storage
        self.settings = settings or get_settings()
        self.transcoder = transcoder or MediaTranscoder.from_settings(self.settings)

    async def upload_photo(
        self,
        category: Optional[str],
        date: Optional[str],
        file_content: Optional[bytes],
        original_filename: Optional[str],
        declared_size: Optional[int] = None,
    ) -> PhotoRecord:
        """
        Validate, transcode and store one uploaded image.

        Args:
            category: Grouping label, becomes a directory name
            date: YYYY-MM-DD grouping date
            file_content: Raw uploaded bytes (None when no file was attached)
            original_filename: Client-supplied filename
            declared_size: Size reported by the client/multipart parser, if known

        Returns:
            The committed PhotoRecord

        Raises:
            MissingFieldError, InvalidFieldError, InvalidFileTypeError,
            PayloadTooLargeError, DecodeError: the input was rejected
            StorageError: writing files or the row failed
        """
        category, date = validate_category_and_date(
            category, date, self.settings.category_list
        )
        if file_content is None:
            raise MissingFieldError("No file uploaded")
        validate_image_filename(original_filename, self.settings.extension_set)
        if declared_size is not None:
            check_upload_size(declared_size, self.settings.max_upload_bytes)
        check_upload_size(len(file_content), self.settings.max_upload_bytes)

        paths = derive_storage_paths(category, date, self.settings.upload_subdir)
        await run_in_threadpool(self.storage.ensure_dir, paths.storage_dir)
        await run_in_threadpool(self.storage.ensure_dir, paths.thumbnail_dir)

        filename = build_stored_filename(original_filename)
        filepath = posixpath.join(paths.storage_dir, filename)
        thumbnail_path = posixpath.join(paths.thumbnail_dir, thumbnail_filename(filename))

        with record_transcode():
            result = await run_in_threadpool(self.transcoder.transcode, file_content)

        await run_in_threadpool(self.storage.write_bytes, filepath, result.display_bytes)
        try:
            await run_in_threadpool(self.storage.write_bytes, thumbnail_path, result.thumbnail_bytes)
        except StorageError:
            await self._discard_files([filepath], operation="rollback")
            raise

        photo = PhotoRecord(
            category=category,
            date=date,
            filename=filename,
            filepath=filepath,
            thumbnail_path=thumbnail_path,
            original_filename=original_filename,
            file_size=len(file_content),
            dimensions=result.dimensions,
        )
        try:
            self.db.add(photo)
            await self.db.flush()
            await self.db.refresh(photo)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Photo metadata insert failed",
                exc_info=e,
                extra={"event": "upload", "path": filepath},
            )
            await self._discard_files([filepath, thumbnail_path], operation="rollback")
            raise StorageError("Failed to save photo metadata") from e

        logger.info(
            "Photo uploaded",
            extra={
                "event": "upload",
                "photo_id": photo.id,
                "category": category,
                "date": date,
                "bytes": photo.file_size,
                "dimensions": photo.dimensions,
            },
        )
        return photo

    async def get_photo_by_id(self, photo_id: int) -> Optional[PhotoRecord]:
        try:
            result = await self.db.execute(
                select(PhotoRecord).where(PhotoRecord.id == photo_id)
            )
        except SQLAlchemyError as e:
            raise StorageError("Failed to load photo") from e
        return result.scalar_one_or_none()

    async def get_photo(self, photo_id: int) -> PhotoRecord:
        photo = await self.get_photo_by_id(photo_id)
        if photo is None:
            raise NotFoundError("Photo not found")
        return photo

    async def list_photos(
        self,
        category: Optional[str] = None,
        date: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> PhotoListResponse:
        """
        One page of photos, most recent first.

        The filter applies only when both ``category`` and ``date`` are given;
        otherwise every photo is listed. A page past the end is empty, not an error.
        """
        query = select(PhotoRecord)
        count_query = select(func.count()).select_from(PhotoRecord)
        if category and date:
            condition = (PhotoRecord.category == category) & (PhotoRecord.date == date)
            query = query.where(condition)
            count_query = count_query.where(condition)

        offset = (page - 1) * limit
        try:
            total = (await self.db.execute(count_query)).scalar_one()
            result = await self.db.execute(
                query.order_by(PhotoRecord.created_at.desc(), PhotoRecord.id.desc())
                .offset(offset)
                .limit(limit)
            )
        except SQLAlchemyError as e:
            logger.error("Photo listing failed", exc_info=e, extra={"event": "db"})
            raise StorageError("Failed to list photos") from e

        photos = [PhotoSummary.model_validate(p) for p in result.scalars().all()]
        return PhotoListResponse(
            photos=photos,
            total=total,
            page=page,
            totalPages=math.ceil(total / limit),
        )

    async def delete_photo(self, photo_id: int) -> None:
        """
        Delete a photo's files and its row.

        File removal failures are logged and counted but do not stop the row
        from being deleted.

        Raises:
            NotFoundError: no row with this id
            StorageError: the row delete failed
        """
        photo = await self.get_photo(photo_id)

        await self._discard_files(
            [photo.filepath, photo.thumbnail_path],
            operation="delete",
            photo_id=photo.id,
        )

        try:
            await self.db.delete(photo)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Photo row delete failed",
                exc_info=e,
                extra={"event": "delete", "photo_id": photo_id},
            )
            raise StorageError("Failed to delete photo") from e

        logger.info("Photo deleted", extra={"event": "delete", "photo_id": photo_id})

    async def _discard_files(
        self,
        keys: Iterable[str],
        operation: str,
        photo_id: Optional[int] = None,
    ) -> int:
        """Remove each file independently. Returns how many could not be removed."""
        failed = 0
        for key in keys:
            try:
                await run_in_threadpool(self.storage.remove, key)
            except FileNotFoundError:
                logger.warning(
                    "File already missing",
                    extra={"event": operation, "path": key, "photo_id": photo_id},
                )
            except (OSError, StorageError) as e:
                failed += 1
                file_cleanup_failures_total.labels(operation=operation).inc()
                logger.warning(
                    "File cleanup failed",
                    extra={
                        "event": operation,
                        "path": key,
                        "photo_id": photo_id,
                        "error": str(e),
                    },
                )
        return failed
