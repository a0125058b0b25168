"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_credentials()``
startup gate that enforces credential presence in production mode.

This module imports nothing from the ``autotrade`` package so every other
module can depend on it.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()

# Signing secret used when none is configured outside production.
DEV_TOKEN_SECRET = "autotrade-dev-secret"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields keep the signing secret out of logs and reprs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    http_port: int = 8000

    # -- Storage ---------------------------------------------------------------
    db_path: Path = Path("data/marketplace.db")

    # -- Identity --------------------------------------------------------------
    token_secret: SecretStr = SecretStr("")

    # -- Marketplace rules -----------------------------------------------------
    listing_renewal_cooldown_hours: int = Field(default=12, ge=0)
    idempotency_window_seconds: int = Field(default=600, ge=0)
    message_max_length: int = Field(default=2000, ge=1)

    # -- Real-time -------------------------------------------------------------
    broadcast_presence: bool = False

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""

    def signing_secret(self) -> str:
        """Return the token secret, falling back to the development secret."""
        return self.token_secret.get_secret_value() or DEV_TOKEN_SECRET


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    The ``@lru_cache`` decorator ensures environment variables are parsed
    exactly once.  Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list, never the raw input values.
        logger.error("settings_validation_failed", errors=exc.errors(include_input=False))
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce credential presence at startup.

    In **production** mode (``settings.production is True``), the application
    exits with a clear error block if any required credential is missing.

    In **development** mode, each missing credential is logged as a warning
    and the development signing secret is used.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.token_secret.get_secret_value():
        errors.append("TOKEN_SECRET is empty or not set")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
