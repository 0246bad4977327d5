"""
Health check router.
"""
import asyncio
import logging
import os
import time
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import text

from photolog.config import get_settings
from photolog.database import engine
from photolog.utils.prometheus_metrics import REGISTRY, Gauge, ready

logger = logging.getLogger("photolog.health")
router = APIRouter(prefix="/health", tags=["Health"])

health_check_status = Gauge(
    "photolog_health_check_status",
    "Health check status (1=healthy, 0=unhealthy)",
    ["check_type"],
    registry=REGISTRY,
)


async def _check_db() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


@router.get("", summary="Health check")
async def health_check() -> Dict[str, Any]:
    """
    Fast health check for load balancers.

    - 503 while shutting down
    - 503 when the database does not answer within 1 second
    - reports whether the upload directory is writable
    """
    settings = get_settings()
    start_time = time.perf_counter()

    if ready._value.get() == 0:
        health_check_status.labels(check_type="fast").set(0)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application is shutting down",
        )

    try:
        await asyncio.wait_for(_check_db(), timeout=1.0)
    except asyncio.TimeoutError:
        logger.warning("DB health check timeout", extra={"event": "health"})
        health_check_status.labels(check_type="fast").set(0)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection timeout",
        )
    except Exception as e:
        logger.warning("DB health check failed", extra={"event": "health", "error": str(e)})
        health_check_status.labels(check_type="fast").set(0)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection failed",
        )

    upload_dir = os.path.join(settings.media_root, settings.upload_subdir)
    health_check_status.labels(check_type="fast").set(1)
    return {
        "status": "healthy",
        "db": True,
        "storage_writable": os.access(upload_dir, os.W_OK),
        "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
    }


@router.get("/liveness", summary="Liveness probe")
async def liveness_probe() -> Dict[str, str]:
    """Process is up; no dependency checks."""
    return {"status": "alive"}
