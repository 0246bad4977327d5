"""
Services package.
Contains the upload/gallery business logic and its storage collaborators.
"""
from photolog.services.photo import PhotoService
from photolog.services.storage import LocalFileStorage
from photolog.services.transcoder import MediaTranscoder, TranscodeResult

__all__ = [
    "LocalFileStorage",
    "MediaTranscoder",
    "PhotoService",
    "TranscodeResult",
]
