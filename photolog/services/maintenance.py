"""
Orphan file sweep.

Finds files under the upload tree that no photo row references (left behind by
a crash between file write and row insert, or by a failed unlink during
delete) and removes those older than a grace period. Rows whose files are
missing ("dangling rows") are counted but left in place.
"""
import asyncio
import logging
import time
from typing import List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from photolog.config import Settings, get_settings
from photolog.database import get_db_context
from photolog.models.photo import PhotoRecord
from photolog.schemas.photo import SweepReport
from photolog.services.storage import LocalFileStorage
from photolog.utils.prometheus_metrics import (
    dangling_rows_found,
    file_cleanup_failures_total,
    orphan_files_found,
    orphan_files_removed_total,
)

logger = logging.getLogger("photolog.maintenance")

SAMPLE_LIMIT = 100


async def _load_references(db: AsyncSession) -> List[Tuple[str, str]]:
    result = await db.execute(select(PhotoRecord.filepath, PhotoRecord.thumbnail_path))
    return [(row.filepath, row.thumbnail_path) for row in result]


def _count_dangling(storage: LocalFileStorage, rows: List[Tuple[str, str]]) -> int:
    return sum(
        1 for filepath, thumbnail_path in rows
        if not storage.exists(filepath) or not storage.exists(thumbnail_path)
    )


async def sweep_orphans(
    db: AsyncSession,
    storage: LocalFileStorage,
    dry_run: bool = True,
    grace_seconds: Optional[int] = None,
    settings: Optional[Settings] = None,
    now: Optional[float] = None,
) -> SweepReport:
    """
    Compare the upload tree against photo rows.

    Files are listed before rows are read, so a file whose row commits
    mid-sweep is either referenced or younger than the grace period.

    Args:
        db: Database session
        storage: File store rooted at the media root
        dry_run: Report only, remove nothing
        grace_seconds: Minimum age of an unreferenced file before it is removed
        now: Reference time (epoch seconds); defaults to the current time
    """
    settings = settings or get_settings()
    if grace_seconds is None:
        grace_seconds = settings.orphan_grace_seconds
    if now is None:
        now = time.time()

    keys = await run_in_threadpool(lambda: list(storage.iter_files(settings.upload_subdir)))
    rows = await _load_references(db)

    referenced: Set[str] = set()
    for filepath, thumbnail_path in rows:
        referenced.add(filepath)
        referenced.add(thumbnail_path)

    report = SweepReport(scanned=len(keys), dry_run=dry_run)
    for key in keys:
        if key in referenced:
            report.referenced += 1
            continue

        mtime = storage.modified_at(key)
        if mtime is None or now - mtime < grace_seconds:
            continue

        report.orphans += 1
        if len(report.orphan_paths) < SAMPLE_LIMIT:
            report.orphan_paths.append(key)
        if dry_run:
            continue

        try:
            await run_in_threadpool(storage.remove, key)
        except FileNotFoundError:
            continue
        except OSError as e:
            report.failed += 1
            file_cleanup_failures_total.labels(operation="sweep").inc()
            logger.warning(
                "Orphan file removal failed",
                extra={"event": "sweep", "path": key, "error": str(e)},
            )
        else:
            report.removed += 1
            orphan_files_removed_total.inc()

    report.dangling_rows = await run_in_threadpool(_count_dangling, storage, rows)

    orphan_files_found.set(report.orphans)
    dangling_rows_found.set(report.dangling_rows)
    logger.info(
        "Orphan sweep finished",
        extra={
            "event": "sweep",
            "scanned": report.scanned,
            "orphans": report.orphans,
            "removed": report.removed,
            "failed": report.failed,
            "dangling_rows": report.dangling_rows,
            "dry_run": dry_run,
        },
    )
    return report


async def orphan_sweep_loop(storage: LocalFileStorage) -> None:
    """
    Background loop: sweep at ORPHAN_SWEEP_INTERVAL_SECONDS.
    Returns immediately when the interval is 0.
    """
    settings = get_settings()
    interval = settings.orphan_sweep_interval_seconds
    if interval <= 0:
        return
    logger.info(
        "Orphan sweep enabled: interval=%ds grace=%ds",
        interval,
        settings.orphan_grace_seconds,
        extra={"event": "lifecycle"},
    )
    while True:
        await asyncio.sleep(interval)
        try:
            async with get_db_context() as db:
                await sweep_orphans(db, storage, dry_run=False, settings=settings)
        except Exception as e:
            logger.warning("Orphan sweep failed: %s", e, extra={"event": "sweep"})
