"""
Structured request logging middleware.
"""
import time
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from photolog.utils.logger import log_error, log_warning, set_request_id

# Slow response threshold (ms)
SLOW_REQUEST_THRESHOLD_MS = 3000

REQUEST_ID_HEADER = "X-Request-ID"

# Paths that are never logged
EXCLUDED_PATHS = {"/health", "/health/liveness", "/docs", "/openapi.json", "/redoc", "/metrics", "/favicon.ico"}


def get_client_ip(request: Request) -> Optional[str]:
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Request id propagation and request logging.

    - 5xx responses: ERROR
    - 4xx responses: WARNING
    - responses slower than 3s: WARNING
    - everything else: not logged
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        rid = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        client_ip = get_client_ip(request)
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            log_error(
                f"Request exception: {e}",
                error_type=type(e).__name__,
                http_method=request.method,
                http_path=request.url.path,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                client_ip=client_ip,
                event="request",
                exc_info=True,
            )
            raise

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = rid
        status_code = response.status_code

        if status_code >= 500:
            log_error(
                "Request error - Server error occurred",
                http_method=request.method,
                http_path=request.url.path,
                http_status=status_code,
                duration_ms=duration_ms,
                client_ip=client_ip,
                event="request",
            )
        elif status_code >= 400:
            log_warning(
                "Request failed - Client error",
                http_method=request.method,
                http_path=request.url.path,
                http_status=status_code,
                duration_ms=duration_ms,
                client_ip=client_ip,
                event="request",
            )
        elif duration_ms >= SLOW_REQUEST_THRESHOLD_MS:
            log_warning(
                "Slow request detected",
                http_method=request.method,
                http_path=request.url.path,
                http_status=status_code,
                duration_ms=duration_ms,
                client_ip=client_ip,
                event="request",
            )

        return response
