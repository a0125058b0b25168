"""Application entry point for the marketplace HTTP and WebSocket service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error reporting through the structlog bridge
- **Services**: SQLite document store, idempotency ledger, trade engine,
  listing/vehicle/message/review services, identity, real-time registry and publisher
- **FastAPI** app with request ids, Prometheus metrics, health probes and the
  ``/api`` and ``/ws`` routes
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from autotrade.api import register_routes
from autotrade.auth.identity import TokenIdentity
from autotrade.clock import utcnow
from autotrade.config import Settings, get_settings, validate_credentials
from autotrade.domain.models import Trade
from autotrade.health import register_health_routes
from autotrade.listings.service import ListingService
from autotrade.messages.service import MessageService
from autotrade.observability.metrics import ACTIVE_TRADES, setup_metrics
from autotrade.observability.middleware import SERVICE_NAME, RequestContextMiddleware
from autotrade.observability.sentry import get_sentry_processor, init_sentry
from autotrade.realtime.publisher import RealtimePublisher
from autotrade.realtime.registry import ConnectionRegistry
from autotrade.reviews.service import ReviewService
from autotrade.state.idempotency import IdempotencyLedger
from autotrade.state.schema import close_marketplace_db, init_marketplace_db
from autotrade.state.store import DocumentStore
from autotrade.trades.engine import TradeEngine
from autotrade.vehicles.service import VehicleService

logger = structlog.get_logger()


def configure_logging(production: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.  Both modes
    forward ERROR events to Sentry when it is initialised.

    Args:
        production: Enable production mode if ``True``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        get_sentry_processor(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Opens the marketplace database and builds the document store, the
    idempotency ledger, the trade engine, the supporting services, the
    identity resolver and the real-time registry/publisher.  The active
    trades gauge is seeded from the database.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    db_path = settings.db_path
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = init_marketplace_db(db_path)
    services["db_conn"] = conn

    store = DocumentStore(conn, clock=utcnow)
    services["store"] = store

    ledger = IdempotencyLedger(store, window_seconds=settings.idempotency_window_seconds)
    services["ledger"] = ledger
    services["engine"] = TradeEngine(store, ledger)

    services["listings"] = ListingService(
        store,
        renewal_cooldown=timedelta(hours=settings.listing_renewal_cooldown_hours),
    )
    services["vehicles"] = VehicleService(store)
    services["messages"] = MessageService(store, max_length=settings.message_max_length)
    services["reviews"] = ReviewService(store)

    services["identity"] = TokenIdentity(settings.signing_secret())

    registry = ConnectionRegistry()
    services["registry"] = registry
    services["publisher"] = RealtimePublisher(registry)

    active = sum(1 for trade in store.find(Trade) if not trade.is_terminal)
    ACTIVE_TRADES.set(active)
    logger.info("services_initialized", db_path=str(db_path), active_trades=active)

    return services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On startup: prunes expired idempotency keys.
    On shutdown: closes the marketplace database connection.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    services = app.state.services
    ledger: IdempotencyLedger | None = services.get("ledger")
    if ledger is not None:
        pruned = ledger.prune()
        logger.info("idempotency_keys_pruned", count=pruned)
    logger.info("application_starting")
    yield
    conn = services.get("db_conn")
    if conn is not None:
        close_marketplace_db(conn)
        logger.info("database_connection_closed")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, routes and observability.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Autotrade Marketplace", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()
    fastapi_app.add_middleware(RequestContextMiddleware)
    register_health_routes(fastapi_app)
    register_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Main entry point.

    1. Configure logging and Sentry
    2. Validate credentials
    3. Initialize services and create the FastAPI app
    4. Serve with uvicorn until shutdown
    """
    settings = get_settings()
    init_sentry(settings.sentry_dsn, "production" if settings.production else "development")
    configure_logging(production=settings.production)
    logger.info("application_starting", port=settings.http_port)

    validate_credentials(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.http_port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
