"""Map domain errors to HTTP responses.

Every failure body has the same shape::

    {"error": "<kind>", "message": "<one human readable sentence>"}
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from autotrade.domain.errors import MarketplaceError

logger = structlog.get_logger()

STATUS_BY_KIND: dict[str, int] = {
    "not_found": 404,
    "forbidden": 403,
    "invalid_state": 409,
    "conflict": 409,
    "validation_failed": 422,
    "unauthenticated": 401,
}


def error_response(kind: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(content={"error": kind, "message": message}, status_code=status_code)


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    """Render a :class:`MarketplaceError` with the status for its kind."""
    status_code = STATUS_BY_KIND.get(exc.kind, 400)
    logger.info(
        "request_rejected",
        kind=exc.kind,
        path=request.url.path,
        status_code=status_code,
    )
    return error_response(exc.kind, str(exc), status_code)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Flatten FastAPI's validation error list into a single sentence."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        msg = first.get("msg", "invalid value")
        message = f"{where}: {msg}" if where else msg
    else:
        message = "Invalid request"
    return error_response("validation_failed", message, 422)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    return error_response("internal", "An unexpected error occurred", 500)


def register_error_handlers(app: FastAPI) -> None:
    """Install the domain, validation and fallback handlers on *app*."""
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
