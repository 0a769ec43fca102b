"""
NoteSync Backend — Rate Limiting Middleware
============================================

What:  Per-caller sliding-window rate limiter.
How:   Callers are keyed by `X-User-ID`, falling back to the client IP for
       anonymous requests. Each key keeps the timestamps of its requests in
       the last `window` seconds; at `limit` the request is answered with 429
       and a Retry-After header.

State is in-process memory: correct for one uvicorn worker, per-worker with
several.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from notesync.config import settings
from notesync.exceptions import RateLimitExceededError
from notesync.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, limit: Optional[int] = None, window: Optional[int] = None):
        super().__init__(app)
        self.limit = limit or settings.rate_limit_requests
        self.window = window or settings.rate_limit_window
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._seen = 0

    @staticmethod
    def caller_key(request: Request) -> str:
        owner_id = request.headers.get("X-User-ID")
        if owner_id:
            return f"user:{owner_id}"
        return f"ip:{request.client.host if request.client else 'unknown'}"

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        key = self.caller_key(request)
        now = time.monotonic()
        window_start = now - self.window

        timestamps = self._requests[key]
        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()

        if len(timestamps) >= self.limit:
            retry_after = int(timestamps[0] + self.window - now) + 1
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds window",
                key,
                len(timestamps),
                self.window,
            )
            error = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=error.status_code,
                content={
                    "error": error.error_code,
                    "message": error.message,
                    "details": error.context,
                    "request_id": request_id_var.get("") or None,
                },
                headers={"Retry-After": str(retry_after)},
            )

        timestamps.append(now)

        self._seen += 1
        if self._seen % 1000 == 0:
            self._forget_idle(window_start)

        return await call_next(request)

    def _forget_idle(self, window_start: float) -> None:
        idle = [key for key, ts in self._requests.items() if not ts or ts[-1] <= window_start]
        for key in idle:
            del self._requests[key]
        if idle:
            logger.debug("Dropped %d idle rate-limit entries", len(idle))
