"""
NoteSync Backend — Access Logging Middleware
=============================================

What:  One access-log line per request on the `notesync.access` logger.
How:   Level follows the status code (5xx ERROR, 4xx WARNING, else INFO).
       The caller's X-User-ID is logged; bodies never are, since notes are
       user content. `/health` is skipped.

Example:
    POST /api/notes/doc/1712/summarize 201 2412.3ms [a1b2c3d4] user=u-42 from 10.0.0.7
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notesync.middleware.request_id import request_id_var

logger = logging.getLogger("notesync.access")

QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        client_ip = request.client.host if request.client else "unknown"
        owner_id = request.headers.get("X-User-ID", "-")
        rid = request_id_var.get("") or getattr(request.state, "request_id", "")

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] user=%s from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            owner_id,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "owner_id": owner_id,
                "client_ip": client_ip,
            },
        )
        return response
