"""
Pydantic schemas package.
"""
from photolog.schemas.photo import (
    CategoriesResponse,
    DeleteResponse,
    PhotoListResponse,
    PhotoResponse,
    PhotoSummary,
    SweepReport,
    UploadResponse,
)

__all__ = [
    "CategoriesResponse",
    "DeleteResponse",
    "PhotoListResponse",
    "PhotoResponse",
    "PhotoSummary",
    "SweepReport",
    "UploadResponse",
]
