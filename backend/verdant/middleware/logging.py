"""
Verdant Backend: Request Logging Middleware
===========================================

What:  One access log line per request on the `verdant.access` logger.
How:   Measures wall time around the downstream app and logs method, path,
       status, duration, request ID, caller and client IP.

Level by status class:
    5xx → ERROR, 4xx → WARNING, everything else → INFO

Logged: method, path, status, duration, request ID, X-User-ID, client IP.
Never logged: request bodies (notes and photos are user content).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from verdant.middleware.request_id import request_id_var

logger = logging.getLogger("verdant.access")

# Polled every few seconds by orchestration; not worth a log line each
QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        owner = request.headers.get("X-User-ID", "-")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] user=%s from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            owner,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
