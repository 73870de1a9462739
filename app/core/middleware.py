"""
HTTP middleware: request id propagation and request/response logging.
"""

import time
from typing import Callable, Set

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging_config import generate_request_id, get_logger, set_request_id

logger = get_logger("http")

SKIP_LOGGING_PATHS: Set[str] = {
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Assigns each request an id (honouring an incoming X-Request-ID), exposes it
    to downstream logging, logs method/path/status/duration and echoes the id
    back in the X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        path = request.url.path

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                f"{request.method} {path} failed ({duration_ms:.2f}ms)",
                extra={"http_method": request.method, "http_path": path, "duration_ms": duration_ms},
            )
            set_request_id("")
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        if path not in SKIP_LOGGING_PATHS:
            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                f"{request.method} {path} - {response.status_code} ({duration_ms:.2f}ms)",
                extra={
                    "http_method": request.method,
                    "http_path": path,
                    "http_status": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
        set_request_id("")
        response.headers["X-Request-ID"] = request_id
        return response
