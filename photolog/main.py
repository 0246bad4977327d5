"""
FastAPI Photo Log application.

Main application entry point that configures:
- CORS middleware
- API routers and the static /uploads mount
- Database lifecycle
- Logging system
- Exception handlers
- Prometheus metrics (scrape + optional Pushgateway)
- Background orphan sweep
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from photolog.config import get_settings
from photolog.database import close_db, init_db
from photolog.dependencies import get_file_storage
from photolog.exceptions import PhotoLogError
from photolog.middlewares.logging_middleware import LoggingMiddleware
from photolog.routers import health_router, maintenance_router, photos_router
from photolog.services.maintenance import orphan_sweep_loop
from photolog.utils.logger import get_request_id, log_error, log_info, setup_logging
from photolog.utils.prometheus_metrics import (
    exceptions_total,
    pushgateway_loop,
    ready,
    setup_prometheus,
)

settings = get_settings()
logger = logging.getLogger("photolog")

setup_logging()

UPLOAD_DIR = Path(settings.media_root) / settings.upload_subdir
UPLOAD_PATH = "/api/upload"

# Interactive docs are not served in production
DOCS_URL = None if settings.is_production else "/docs"


async def _cancel(task: asyncio.Task) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup: upload root, schema, background tasks.
    Shutdown: fail health checks first, then stop tasks and dispose the engine.
    """
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    await init_db(reset=settings.reset_db_on_startup)

    pushgateway_task = asyncio.create_task(pushgateway_loop())
    sweep_task = asyncio.create_task(orphan_sweep_loop(get_file_storage()))

    ready.set(1)
    log_info(
        "Application startup completed",
        event="lifecycle",
        version=settings.app_version,
        environment=settings.environment.value,
        upload_dir=str(UPLOAD_DIR),
    )

    yield

    ready.set(0)
    log_info("Application shutdown initiated", event="lifecycle")

    await _cancel(sweep_task)
    await _cancel(pushgateway_task)
    await close_db()

    log_info("Shutdown completed", event="lifecycle")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
## Photo Log API

Upload photos under a category and a date, browse them, delete them.

### Features
- **Upload**: JPEG display copy (max 2000px) plus a 200x200 thumbnail
- **Gallery**: paginated listing, most recent first, filtered by category and date
- **Deletion**: removes the record and both files
- **Maintenance**: sweep for files no photo references
    """,
    openapi_tags=[
        {"name": "Photos", "description": "Photo upload, listing and deletion"},
        {"name": "Maintenance", "description": "Storage consistency"},
        {"name": "Health", "description": "Load balancer probes"},
    ],
    docs_url=DOCS_URL,
    redoc_url=None if settings.is_production else "/redoc",
    lifespan=lifespan,
)

# Prometheus: FastAPI metrics + node info at /metrics
setup_prometheus(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LoggingMiddleware)


@app.exception_handler(PhotoLogError)
async def photolog_exception_handler(request: Request, exc: PhotoLogError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("query", "path", "body"))
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    # Upload failures of any kind answer 500
    status_code = (
        status.HTTP_500_INTERNAL_SERVER_ERROR
        if request.url.path == UPLOAD_PATH
        else status.HTTP_400_BAD_REQUEST
    )
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Unhandled exception handler.

    Logs at ERROR and answers 500 with the request id so the failure can be
    traced in the logs.
    """
    exceptions_total.inc()
    rid = get_request_id()

    log_error(
        "Unhandled exception occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        http_method=request.method,
        http_path=request.url.path,
        event="exception",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "request_id": rid},
    )


app.include_router(health_router)
app.include_router(photos_router)
app.include_router(maintenance_router)


@app.get(
    "/",
    tags=["Root"],
    summary="API information",
)
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": DOCS_URL,
    }


# Stored paths are keys like uploads/<category>/..., served as-is
app.mount(
    f"/{settings.upload_subdir}",
    StaticFiles(directory=str(UPLOAD_DIR), check_dir=False),
    name="uploads",
)
