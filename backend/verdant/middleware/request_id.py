"""
Verdant Backend: Request ID Middleware
======================================

What:  Assigns a correlation ID to every request and echoes it back.
Why:   Ties access logs, error responses and the background enrichment run
       of one care event to the same short ID.
How:   Honors an incoming X-Request-ID, otherwise generates one; stores it in
       a ContextVar and on request.state, and sets the response header.

CareLogService copies the current ID into each EnrichmentJob, because the
job outlives the request that created it.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local; concurrent requests on one loop each see their own value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # 8 chars is enough to correlate within a day of logs
        rid = request.headers.get(HEADER) or str(uuid.uuid4())[:8]

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[HEADER] = rid
        return response
