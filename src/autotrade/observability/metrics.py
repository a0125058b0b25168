"""Prometheus metrics instrumentation for the marketplace.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus custom business metrics.
- ``ACTIVE_TRADES``: Gauge tracking non-terminal trades.
- ``TRADES_COMPLETED``: Counter tracking trades reaching COMPLETED.
- ``TRADES_CLOSED``: Counter of trades closed without completion, by status.
- ``REALTIME_DELIVERY_FAILURES``: Counter of real-time pushes that failed to send.

Business metrics are updated at state transitions (not by polling the database).
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator

ACTIVE_TRADES: Gauge = Gauge(
    "marketplace_active_trades",
    "Number of currently active (non-terminal) trades",
)

TRADES_COMPLETED: Counter = Counter(
    "marketplace_trades_completed_total",
    "Total number of trades reaching COMPLETED",
)

TRADES_CLOSED: Counter = Counter(
    "marketplace_trades_closed_total",
    "Total number of trades closed without completion",
    ["status"],
)

REALTIME_DELIVERY_FAILURES: Counter = Counter(
    "marketplace_realtime_delivery_failures_total",
    "Real-time events that could not be sent to a live connection",
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
