"""
Photo-related Pydantic schemas for responses.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PhotoSummary(BaseModel):
    """Gallery projection of a photo record (no upload metadata)."""

    id: int
    category: str
    date: str
    filename: str
    filepath: str
    thumbnail_path: str
    dimensions: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PhotoResponse(PhotoSummary):
    """Full photo record."""

    original_filename: str
    file_size: Optional[int] = None


class PhotoListResponse(BaseModel):
    """One page of the gallery."""

    photos: List[PhotoSummary]
    total: int
    page: int
    totalPages: int


class UploadResponse(BaseModel):
    """Schema for upload response."""

    success: bool = True
    id: int
    filename: str
    filepath: str
    thumbnailPath: str
    category: str
    date: str
    dimensions: Optional[str] = None
    file_size: Optional[int] = None


class DeleteResponse(BaseModel):
    success: bool = True


class CategoriesResponse(BaseModel):
    categories: List[str] = Field(
        default_factory=list,
        description="Configured categories. Empty when any safe category is accepted.",
    )


class SweepReport(BaseModel):
    """Outcome of one orphan file sweep."""

    scanned: int = 0
    referenced: int = 0
    orphans: int = 0
    removed: int = 0
    failed: int = 0
    dangling_rows: int = 0
    dry_run: bool = True
    orphan_paths: List[str] = Field(default_factory=list, description="First 100 orphan paths")
