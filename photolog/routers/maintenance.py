"""
Maintenance router: on-demand orphan file sweep.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from photolog.database import get_db
from photolog.dependencies import get_file_storage
from photolog.schemas.photo import SweepReport
from photolog.services.maintenance import sweep_orphans
from photolog.services.storage import LocalFileStorage

router = APIRouter(prefix="/api/maintenance", tags=["Maintenance"])


@router.post(
    "/sweep",
    response_model=SweepReport,
    summary="Find (and optionally remove) files no photo references",
)
async def sweep(
    dry_run: bool = Query(True, description="Report only; nothing is removed"),
    grace_seconds: Optional[int] = Query(None, ge=0, description="Skip files younger than this"),
    db: AsyncSession = Depends(get_db),
    storage: LocalFileStorage = Depends(get_file_storage),
) -> SweepReport:
    """
    Compare the upload tree with photo rows.

    - **orphans**: unreferenced files older than the grace period
    - **removed**: orphans deleted (always 0 on a dry run)
    - **dangling_rows**: rows whose display or thumbnail file is missing
    """
    return await sweep_orphans(db, storage, dry_run=dry_run, grace_seconds=grace_seconds)
