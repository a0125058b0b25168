"""Bearer credential to user id resolution.

Tokens have the form ``<user_id>.<hex HMAC-SHA256 of user_id>`` signed with
the server's ``TOKEN_SECRET``.  Verification uses a constant-time compare.
"""

from __future__ import annotations

import hashlib
import hmac

from autotrade.domain.errors import AuthenticationError


class TokenIdentity:
    """Issue and verify signed user tokens.

    Args:
        secret: The signing secret shared by every server instance.
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("token secret must not be empty")
        self._secret = secret.encode()

    def _sign(self, user_id: str) -> str:
        return hmac.new(self._secret, user_id.encode(), hashlib.sha256).hexdigest()

    def issue_token(self, user_id: str) -> str:
        """Return a bearer token for *user_id*."""
        if not user_id or "." in user_id:
            raise ValueError("user id must be non-empty and must not contain '.'")
        return f"{user_id}.{self._sign(user_id)}"

    def resolve(self, token: str | None) -> str:
        """Return the user id a token was issued for.

        Raises:
            AuthenticationError: If the token is missing, malformed, or its
                signature does not verify.
        """
        if not token:
            raise AuthenticationError("Authentication required")
        user_id, _, signature = token.rpartition(".")
        if not user_id or not signature:
            raise AuthenticationError("Malformed credential")
        if not hmac.compare_digest(self._sign(user_id), signature):
            raise AuthenticationError("Invalid credential")
        return user_id

    def resolve_header(self, authorization: str | None) -> str:
        """Resolve an ``Authorization: Bearer <token>`` header value."""
        if not authorization:
            raise AuthenticationError("Authentication required")
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer":
            raise AuthenticationError("Use a Bearer credential")
        return self.resolve(token.strip())
