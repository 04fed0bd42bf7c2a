"""
PeerRate Backend - Access Log Middleware
========================================

What:  One log line per request on the `peerrate.access` logger.
How:   Times the downstream call and logs method, path, status, duration,
       request id and the acting user (X-User-ID) with a level chosen from
       the status code. Request bodies are never logged: they carry profile
       data and base64 images.

Example:
    PUT /api/users/me/profile-picture 200 84.2ms [3f9a1c0be2d4] user=5b6e...
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from peerrate.middleware.request_id import request_id_var

logger = logging.getLogger("peerrate.access")

# Probed by load balancers every few seconds
QUIET_PATHS = frozenset({"/health"})


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request once it has a response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        rid = request_id_var.get("")
        user_id = request.headers.get("X-User-ID", "-")
        status = response.status_code

        logger.log(
            _level_for(status),
            "%s %s %d %.1fms [%s] user=%s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            user_id,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "user_id": user_id,
            },
        )
        return response
