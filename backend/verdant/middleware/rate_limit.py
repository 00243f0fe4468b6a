"""
Verdant Backend: Rate Limiting Middleware
=========================================

What:  In-memory sliding-window limit per caller.
Why:   Photo uploads are large and each one may trigger AI calls; a runaway
       client should not exhaust disk or provider quota.
How:   Keeps request timestamps per caller key, drops those older than the
       window, and answers 429 with Retry-After once the limit is reached.

Caller key: the X-User-ID forwarded by the auth gateway, falling back to the
client IP for anonymous requests. The header is only trustworthy behind that
gateway, which must strip or overwrite any client-supplied X-User-ID; a
client reaching the service directly could otherwise rotate the header to
get a fresh budget on every request.

State lives in process memory; each worker process counts separately.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from verdant.config import settings
from verdant.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    # Sweep idle callers every this many recorded requests
    CLEANUP_EVERY = 1000

    def __init__(self, app, max_requests: int = None, window_seconds: int = None, **kwargs):
        super().__init__(app, **kwargs)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._recorded = 0

    @staticmethod
    def caller_key(request: Request) -> str:
        owner = request.headers.get("X-User-ID")
        if owner:
            return f"user:{owner}"
        return f"ip:{request.client.host if request.client else 'unknown'}"

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        key = self.caller_key(request)
        now = time.time()
        window_start = now - self.window_seconds

        timestamps = [ts for ts in self._requests[key] if ts > window_start]
        self._requests[key] = timestamps

        if len(timestamps) >= self.max_requests:
            retry_after = int(timestamps[0] + self.window_seconds - now) + 1
            exc = RateLimitExceededError(retry_after=retry_after, context={"caller": key})
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds window",
                key,
                len(timestamps),
                self.window_seconds,
            )
            # Raised exceptions would bypass the app's handlers from here
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": {"retry_after": exc.retry_after},
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        timestamps.append(now)
        self._recorded += 1
        if self._recorded % self.CLEANUP_EVERY == 0:
            self._cleanup_inactive(window_start)

        return await call_next(request)

    def _cleanup_inactive(self, window_start: float) -> None:
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for key in inactive:
            del self._requests[key]
        if inactive:
            logger.debug("Cleaned up %d inactive rate-limit entries", len(inactive))
