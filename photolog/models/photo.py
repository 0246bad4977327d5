"""
Photo record model.
The display image and thumbnail live on local disk; this row points at them.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from photolog.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PhotoRecord(Base):
    """
    Metadata for one uploaded photo.

    ``filepath`` and ``thumbnail_path`` are POSIX paths relative to the media
    root, starting with the upload subdirectory (``uploads/...``). They double
    as URL paths under the static mount.
    """

    __tablename__ = "photos"
    __table_args__ = (
        Index("ix_photos_category_date", "category", "date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Grouping
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD

    # Storage
    filename: Mapped[str] = mapped_column(String(300), nullable=False)
    filepath: Mapped[str] = mapped_column(String(500), nullable=False)
    thumbnail_path: Mapped[str] = mapped_column(String(500), nullable=False)

    # Upload metadata
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    dimensions: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)  # WxH of the source

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<PhotoRecord(id={self.id}, filename={self.filename})>"
