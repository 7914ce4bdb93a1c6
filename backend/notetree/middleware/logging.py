"""
NoteTree Backend — Request Logging Middleware
=============================================

What:  One access-log line per request on the "notetree.access" logger.
How:   Measures the time spent below this middleware and logs method, path,
       status, duration, request id, client IP and the project the request
       was about (parsed from /api/projects/{id}/... or /api/trash/{id}/...).

Example:
    POST /api/projects/4f1c.../notes/ab12.../move 200 3.4ms [1a2b3c4d] project=4f1c... from 127.0.0.1

Levels: 5xx → ERROR, 4xx → WARNING, otherwise INFO. /health is not logged.
Request bodies are never logged.
"""

import logging
import re
import time
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notetree.middleware.request_id import request_id_var

logger = logging.getLogger("notetree.access")

_PROJECT_PATH = re.compile(r"^/api/(?:projects|trash)/([^/]+)")

QUIET_PATHS = {"/health"}


def project_id_from_path(path: str) -> Optional[str]:
    match = _PROJECT_PATH.match(path)
    return match.group(1) if match else None


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        rid = request_id_var.get("")
        project_id = project_id_from_path(path)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] project=%s from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            project_id or "-",
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "project_id": project_id,
                "client_ip": client_ip,
            },
        )
        return response
