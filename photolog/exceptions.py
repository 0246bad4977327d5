"""
Domain exceptions for the upload, gallery and deletion services.

Every error carries a client-facing message and the HTTP status the
exception handler in ``photolog.main`` answers with.
"""
from fastapi import status


class PhotoLogError(Exception):
    """Base class for all photo log errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PhotoLogError):
    """Client input was rejected before anything was stored."""


class MissingFieldError(ValidationError):
    """A required field (category, date or file) is absent or empty."""


class InvalidFieldError(ValidationError):
    """A field is present but malformed (date format, unsafe category)."""


class InvalidFileTypeError(ValidationError):
    """The uploaded file's extension is not an allowed image type."""


class PayloadTooLargeError(ValidationError):
    """The uploaded file exceeds the configured size cap."""


class DecodeError(ValidationError):
    """The uploaded bytes are not a decodable raster image."""


class NotFoundError(PhotoLogError):
    """No photo record exists for the requested id."""

    status_code = status.HTTP_404_NOT_FOUND


class StorageError(PhotoLogError):
    """The database or the filesystem failed underneath an operation."""
