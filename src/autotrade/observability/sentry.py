"""Sentry error reporting, bridged from structlog.

- ``init_sentry(dsn, environment)`` starts the SDK, or does nothing without a DSN.
- ``get_sentry_processor()`` forwards ERROR-level structlog events to Sentry.
- ``scrub_credentials`` strips bearer tokens from outgoing events.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor

_SENSITIVE_HEADERS = frozenset({"authorization", "cookie"})


def scrub_credentials(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    """Replace credential headers and the WebSocket ``token`` query value."""
    request = event.get("request") or {}
    headers = request.get("headers")
    if isinstance(headers, dict):
        for name in list(headers):
            if name.lower() in _SENSITIVE_HEADERS:
                headers[name] = "[Filtered]"
    query = request.get("query_string")
    if isinstance(query, str) and "token=" in query:
        request["query_string"] = "[Filtered]"
    return event


def init_sentry(dsn: str, environment: str = "development") -> None:
    """Initialize the Sentry SDK.

    Returns immediately when *dsn* is empty, so it is safe to call
    unconditionally at startup.

    Args:
        dsn: Sentry DSN string.  Empty string disables Sentry.
        environment: Environment tag attached to every event.
    """
    if not dsn:
        return

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=scrub_credentials,
        integrations=[
            # structlog-sentry reports errors; the stdlib integration would duplicate them.
            LoggingIntegration(event_level=None, level=None),
        ],
    )


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor that forwards ERROR events to Sentry.

    Place it after ``add_log_level`` and before the renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)
