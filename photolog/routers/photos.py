"""
Photos router: upload, gallery listing, lookup and deletion.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import JSONResponse

from photolog.config import get_settings
from photolog.dependencies import get_photo_service
from photolog.exceptions import NotFoundError, PhotoLogError, StorageError, ValidationError
from photolog.schemas.photo import (
    CategoriesResponse,
    DeleteResponse,
    PhotoListResponse,
    PhotoResponse,
    UploadResponse,
)
from photolog.services.photo import PhotoService
from photolog.utils.prometheus_metrics import (
    photo_delete_total,
    photo_upload_file_size_bytes,
    photo_upload_total,
)

logger = logging.getLogger("photolog.photos")

router = APIRouter(prefix="/api", tags=["Photos"])


@router.post(
    "/upload",
    response_model=UploadResponse,
    summary="Upload a photo",
)
async def upload_photo(
    category: Optional[str] = Form(None, description="Category, e.g. Inventory"),
    date: Optional[str] = Form(None, description="Date in YYYY-MM-DD format"),
    photo: Optional[UploadFile] = File(None, description="Image file (jpg, jpeg, png, gif)"),
    photo_service: PhotoService = Depends(get_photo_service),
) -> UploadResponse:
    """
    Upload one photo for a category and date.

    - **category**: grouping label, also the top-level storage directory
    - **date**: YYYY-MM-DD
    - **photo**: image file, at most 10MB

    The image is stored as a JPEG capped at 2000px plus a 200x200 thumbnail
    under `uploads/<category>/<year>/<month>/<day>/`. Any failure, including
    invalid input, answers 500 with `{"error": message}`.
    """
    settings = get_settings()
    content = None
    filename = None
    declared_size = None
    if photo is not None:
        filename = photo.filename
        declared_size = photo.size
        # One byte past the cap is enough to detect an oversized upload
        content = await photo.read(settings.max_upload_bytes + 1)

    try:
        record = await photo_service.upload_photo(
            category=category,
            date=date,
            file_content=content,
            original_filename=filename,
            declared_size=declared_size,
        )
    except ValidationError as e:
        photo_upload_total.labels(result="rejected").inc()
        logger.warning(
            "Photo upload rejected",
            extra={"event": "upload", "error_type": type(e).__name__, "detail": e.message},
        )
        raise
    except PhotoLogError:
        photo_upload_total.labels(result="failure").inc()
        raise
    except Exception as e:
        photo_upload_total.labels(result="failure").inc()
        logger.error("Photo upload failed", exc_info=e, extra={"event": "upload"})
        raise StorageError("Photo upload failed") from e

    photo_upload_total.labels(result="success").inc()
    photo_upload_file_size_bytes.observe(record.file_size or 0)

    return UploadResponse(
        id=record.id,
        filename=record.filename,
        filepath=record.filepath,
        thumbnailPath=record.thumbnail_path,
        category=record.category,
        date=record.date,
        dimensions=record.dimensions,
        file_size=record.file_size,
    )


@router.get(
    "/photos",
    response_model=PhotoListResponse,
    summary="List photos",
)
async def list_photos(
    category: Optional[str] = Query(None),
    date: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    photo_service: PhotoService = Depends(get_photo_service),
) -> PhotoListResponse:
    """
    List photos, most recent first.

    - **category**, **date**: filter; applied only when both are given
    - **page**: 1-based page number
    - **limit**: page size (default 20, capped at 100)
    """
    settings = get_settings()
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    return await photo_service.list_photos(category=category, date=date, page=page, limit=limit)


@router.get(
    "/photos/{photo_id}",
    response_model=PhotoResponse,
    summary="Get a specific photo",
)
async def get_photo(
    photo_id: int,
    photo_service: PhotoService = Depends(get_photo_service),
) -> PhotoResponse:
    photo = await photo_service.get_photo(photo_id)
    return PhotoResponse.model_validate(photo)


@router.delete("/photos", include_in_schema=False)
@router.delete("/photos/", include_in_schema=False)
async def delete_photo_without_id() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Photo ID is required"},
    )


@router.delete(
    "/photos/{photo_id}",
    response_model=DeleteResponse,
    summary="Delete a photo",
)
async def delete_photo(
    photo_id: int,
    photo_service: PhotoService = Depends(get_photo_service),
) -> DeleteResponse:
    """
    Delete a photo's row and both of its files.

    File removal is best-effort: the row is deleted even when a file cannot be.
    """
    try:
        await photo_service.delete_photo(photo_id)
    except NotFoundError:
        photo_delete_total.labels(result="not_found").inc()
        raise
    photo_delete_total.labels(result="success").inc()
    return DeleteResponse()


@router.get(
    "/categories",
    response_model=CategoriesResponse,
    summary="Configured categories",
)
async def list_categories() -> CategoriesResponse:
    return CategoriesResponse(categories=get_settings().category_list)
