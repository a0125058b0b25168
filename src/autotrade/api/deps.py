"""FastAPI dependencies: the service container and the calling user."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, Header, Request

from autotrade.auth.identity import TokenIdentity


def get_services(request: Request) -> dict[str, Any]:
    return request.app.state.services


def current_user(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Resolve the ``Authorization: Bearer`` header to a user id.

    Raises:
        AuthenticationError: Missing or invalid credential (HTTP 401).
    """
    identity: TokenIdentity = request.app.state.services["identity"]
    return identity.resolve_header(authorization)


Services = Annotated[dict[str, Any], Depends(get_services)]
CurrentUser = Annotated[str, Depends(current_user)]
IdempotencyKey = Annotated[str | None, Header(alias="Idempotency-Key")]
