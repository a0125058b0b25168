"""Health and readiness endpoints for container orchestration.

- ``GET /health``: liveness probe, 200 while the process is alive.
- ``GET /ready``: readiness probe, 200 only when the marketplace database
  answers a query; 503 with per-check details otherwise.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*.

    Args:
        app: The FastAPI application instance.
    """

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness probe: checks the database connection."""
        services: dict[str, Any] = request.app.state.services
        checks: dict[str, str] = {}

        conn = services.get("db_conn")
        if conn is not None:
            try:
                conn.execute("SELECT 1")
                checks["database"] = "ok"
            except sqlite3.Error:
                checks["database"] = "fail"
        else:
            checks["database"] = "fail"

        all_ok = all(v == "ok" for v in checks.values())
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
