"""
NoteTree Backend — Request ID Middleware
========================================

What:  Gives every request a short correlation id, stored in a ContextVar for
       log lines and error bodies, and echoed in the X-Request-ID header.
How:   A well-formed client-supplied X-Request-ID is reused; anything else is
       replaced by the first 8 characters of a fresh UUID4.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Client ids longer than this, or with characters outside the set below, are replaced
MAX_REQUEST_ID_LENGTH = 64
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]+$")

# Coroutine-local; each concurrent request sees its own value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return str(uuid.uuid4())[:8]


def accept_request_id(value: str) -> bool:
    """Whether a client-supplied id is safe to reuse in logs and headers."""
    return 0 < len(value) <= MAX_REQUEST_ID_LENGTH and bool(_VALID_REQUEST_ID.match(value))


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns request.state.request_id and request_id_var for the request's lifetime."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "")
        rid = incoming if accept_request_id(incoming) else new_request_id()

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
