"""
Prometheus metrics.

- FastAPI: request count, latency (Instrumentator)
- Node/instance: app_info
- Stability: exceptions_total, db_errors_total, file_cleanup_failures_total
- HA: ready gauge (1=up, 0=shutting down)
- Domain: uploads, upload sizes, transcode latency, deletions, orphan sweeps
- Pushgateway: optional periodic push (PROMETHEUS_PUSHGATEWAY_URL)
"""
import asyncio
import logging
import socket
import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import REGISTRY, Counter, Gauge, Histogram, pushadd_to_gateway
from prometheus_fastapi_instrumentator import Instrumentator

from photolog.config import get_settings

logger = logging.getLogger(__name__)

# --- Stability ---
exceptions_total = Counter(
    "photolog_exceptions_total",
    "Total unhandled exceptions",
    registry=REGISTRY,
)
db_errors_total = Counter(
    "photolog_db_errors_total",
    "Total database session/transaction errors",
    registry=REGISTRY,
)
# Swallowed unlink failures: the signal a later sweep uses to find orphans
file_cleanup_failures_total = Counter(
    "photolog_file_cleanup_failures_total",
    "Total stored files that could not be removed",
    ["operation"],  # operation: delete | rollback | sweep
    registry=REGISTRY,
)

# --- HA ---
ready = Gauge(
    "photolog_ready",
    "Application ready (1=up, 0=shutting down)",
    registry=REGISTRY,
)

# --- Upload ---
photo_upload_total = Counter(
    "photolog_photo_upload_total",
    "Total number of photo upload attempts",
    ["result"],  # result: success | rejected | failure
    registry=REGISTRY,
)
photo_upload_file_size_bytes = Histogram(
    "photolog_photo_upload_file_size_bytes",
    "Raw uploaded file size in bytes",
    buckets=(10240, 102400, 512000, 1024000, 2048000, 5120000, 10485760),
    registry=REGISTRY,
)
transcode_duration_seconds = Histogram(
    "photolog_transcode_duration_seconds",
    "Time spent decoding and re-encoding one upload",
    ["result"],  # result: success | failure
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    registry=REGISTRY,
)

# --- Gallery ---
photo_delete_total = Counter(
    "photolog_photo_delete_total",
    "Total number of photo delete attempts",
    ["result"],  # result: success | not_found
    registry=REGISTRY,
)

# --- Orphan sweep ---
orphan_files_removed_total = Counter(
    "photolog_orphan_files_removed_total",
    "Total unreferenced files removed by the orphan sweep",
    registry=REGISTRY,
)
orphan_files_found = Gauge(
    "photolog_orphan_files_found",
    "Unreferenced files seen by the most recent sweep",
    registry=REGISTRY,
)
dangling_rows_found = Gauge(
    "photolog_dangling_rows_found",
    "Photo rows whose files were missing at the most recent sweep",
    registry=REGISTRY,
)


@contextmanager
def record_transcode() -> Iterator[None]:
    """Observe transcode duration, labelled by outcome."""
    start = time.perf_counter()
    result = "success"
    try:
        yield
    except Exception:
        result = "failure"
        raise
    finally:
        transcode_duration_seconds.labels(result=result).observe(time.perf_counter() - start)


def _node_identity() -> str:
    """Node/instance identifier: NODE_NAME env or hostname."""
    settings = get_settings()
    if settings.node_name:
        return settings.node_name
    try:
        return socket.gethostname()
    except OSError:
        return "unknown"


def push_metrics_to_gateway() -> None:
    """
    Push the current registry to the Prometheus Pushgateway.
    Called periodically when PROMETHEUS_PUSHGATEWAY_URL is set.
    """
    settings = get_settings()
    url = (settings.prometheus_pushgateway_url or "").strip()
    if not url:
        return
    grouping_key = {"instance": settings.instance_ip or _node_identity()}
    try:
        # POST (pushadd); some gateways/proxies reject PUT
        pushadd_to_gateway(url, job="photolog", registry=REGISTRY, grouping_key=grouping_key)
    except Exception as e:
        logger.warning("Pushgateway push failed: %s", e)


async def pushgateway_loop() -> None:
    """
    Background loop: push metrics at the configured interval.
    Returns immediately when PROMETHEUS_PUSHGATEWAY_URL is not set.
    """
    settings = get_settings()
    url = (settings.prometheus_pushgateway_url or "").strip()
    if not url:
        return
    interval = max(15, settings.prometheus_push_interval_seconds)
    logger.info(
        "Pushgateway enabled: url=%s interval=%ds",
        url,
        interval,
        extra={"event": "lifecycle"},
    )
    loop = asyncio.get_running_loop()
    while True:
        await asyncio.sleep(interval)
        await loop.run_in_executor(None, push_metrics_to_gateway)


def setup_prometheus(app) -> None:
    """
    Register request instrumentation and expose /metrics.
    """
    settings = get_settings()

    app_info = Gauge(
        "photolog_app_info",
        "Application and node identity (labels only, value is 1)",
        ["node", "app", "version", "environment"],
        registry=REGISTRY,
    )
    app_info.labels(
        node=_node_identity(),
        app=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
    ).set(1)

    Instrumentator(should_group_status_codes=False).instrument(app).expose(
        app, endpoint="/metrics"
    )
