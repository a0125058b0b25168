"""Per-request logging context for the HTTP surface.

Each request gets an id: the client's ``X-Request-ID`` when it is a plain
token, a fresh UUID4 otherwise.  The id, method and path are bound into
structlog contextvars for everything logged while the request runs, the id
is echoed on the response, and one ``http_request`` line is written when the
request finishes.
"""

from __future__ import annotations

import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

SERVICE_NAME = "autotrade"
REQUEST_ID_HEADER = "X-Request-ID"

_CLIENT_REQUEST_ID = re.compile(r"[A-Za-z0-9._:-]{1,128}")

# These still get an id but no completion line.
_UNLOGGED_PATHS = frozenset({"/health", "/ready", "/metrics"})

logger = structlog.get_logger()


def resolve_request_id(header_value: str | None) -> str:
    """Return *header_value* if it is usable as a log field, else a new UUID4."""
    if header_value and _CLIENT_REQUEST_ID.fullmatch(header_value):
        return header_value
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        path = request.url.path
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            service=SERVICE_NAME,
            method=request.method,
            path=path,
        )

        started = time.perf_counter()
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        if path not in _UNLOGGED_PATHS:
            logger.info(
                "http_request",
                status=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        return response
