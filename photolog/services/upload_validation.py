"""
Input checks for the upload endpoint.

Everything here runs before the image is decoded or anything is written.
"""
import re
from typing import Iterable, Optional, Tuple

from photolog.exceptions import (
    InvalidFieldError,
    InvalidFileTypeError,
    MissingFieldError,
    PayloadTooLargeError,
)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_category_and_date(
    category: Optional[str],
    date: Optional[str],
    allowed_categories: Iterable[str] = (),
) -> Tuple[str, str]:
    """
    Return stripped (category, date).

    Raises:
        MissingFieldError: either value is absent or blank
        InvalidFieldError: date is not YYYY-MM-DD, or the category cannot be a
            single path segment / is not one of ``allowed_categories``
    """
    category = (category or "").strip()
    date = (date or "").strip()
    if not category or not date:
        raise MissingFieldError("Category and date are required")

    if not DATE_PATTERN.match(date):
        raise InvalidFieldError("Date must be in YYYY-MM-DD format")

    # category becomes a directory name
    if "/" in category or "\\" in category or "\x00" in category or category.startswith("."):
        raise InvalidFieldError(f"Invalid category: {category}")

    allowed = list(allowed_categories)
    if allowed and category not in allowed:
        raise InvalidFieldError(
            f"Unknown category: {category}. Allowed: {', '.join(allowed)}"
        )
    return category, date


def file_extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def validate_image_filename(filename: Optional[str], allowed_extensions: Iterable[str]) -> str:
    """
    Check a file was attached and its extension is an allowed image type.

    Raises:
        MissingFieldError: no file / empty filename
        InvalidFileTypeError: extension not in ``allowed_extensions`` (case-insensitive)
    """
    if not filename:
        raise MissingFieldError("No file uploaded")
    allowed = {ext.lower() for ext in allowed_extensions}
    if file_extension(filename) not in allowed:
        raise InvalidFileTypeError(
            f"Only image files are allowed ({', '.join(sorted(allowed))})"
        )
    return filename


def check_upload_size(size: int, max_bytes: int) -> None:
    """Raise PayloadTooLargeError when ``size`` exceeds ``max_bytes``."""
    if size > max_bytes:
        raise PayloadTooLargeError(
            f"File too large. Maximum size: {max_bytes // (1024 * 1024)}MB"
        )
