"""HTTP and WebSocket surface."""

from fastapi import FastAPI

from autotrade.api import listings, messages, reviews, trades, vehicles, ws
from autotrade.api.errors import register_error_handlers


def register_routes(app: FastAPI) -> None:
    """Mount every router and the error handlers on *app*."""
    register_error_handlers(app)
    for module in (trades, listings, vehicles, messages, reviews, ws):
        app.include_router(module.router)


__all__ = ["register_routes"]
