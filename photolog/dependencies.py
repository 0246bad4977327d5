"""
FastAPI dependency providers.

Handlers receive the file store, transcoder and photo service through
``Depends`` so tests can swap them with ``app.dependency_overrides``.
"""
from functools import lru_cache
from pathlib import Path

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from photolog.config import get_settings
from photolog.database import get_db
from photolog.services.photo import PhotoService
from photolog.services.storage import LocalFileStorage
from photolog.services.transcoder import MediaTranscoder


@lru_cache()
def get_file_storage() -> LocalFileStorage:
    return LocalFileStorage(Path(get_settings().media_root))


@lru_cache()
def get_transcoder() -> MediaTranscoder:
    return MediaTranscoder.from_settings(get_settings())


def get_photo_service(
    db: AsyncSession = Depends(get_db),
    storage: LocalFileStorage = Depends(get_file_storage),
    transcoder: MediaTranscoder = Depends(get_transcoder),
) -> PhotoService:
    return PhotoService(db, storage, transcoder)
