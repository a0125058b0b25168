"""Tests for centralized Settings, credential validation, and get_settings cache.

Covers: defaults, env-override, signing secret fallback, production
credential gate, dev-mode warnings, and lru_cache behavior.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from autotrade.config import DEV_TOKEN_SECRET, Settings, get_settings, validate_credentials

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Clear get_settings lru_cache before each test."""
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Settings defaults
# ---------------------------------------------------------------------------

class TestSettingsDefaults:
    """Verify that Settings fields have the expected default values."""

    def test_settings_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is False
        assert s.http_port == 8000
        assert s.db_path == Path("data/marketplace.db")
        assert s.listing_renewal_cooldown_hours == 12
        assert s.idempotency_window_seconds == 600
        assert s.broadcast_presence is False

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRODUCTION", "true")
        monkeypatch.setenv("HTTP_PORT", "9090")
        monkeypatch.setenv("TOKEN_SECRET", "s3cret")
        monkeypatch.setenv("BROADCAST_PRESENCE", "1")

        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is True
        assert s.http_port == 9090
        assert s.token_secret.get_secret_value() == "s3cret"
        assert s.broadcast_presence is True

    def test_secret_hidden_from_repr(self) -> None:
        s = Settings(_env_file=None, token_secret="s3cret")  # type: ignore[call-arg]
        assert "s3cret" not in repr(s)


class TestSigningSecret:
    def test_configured_secret_is_used(self) -> None:
        s = Settings(_env_file=None, token_secret="s3cret")  # type: ignore[call-arg]
        assert s.signing_secret() == "s3cret"

    def test_falls_back_to_dev_secret(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.signing_secret() == DEV_TOKEN_SECRET


# ---------------------------------------------------------------------------
# Credential validation
# ---------------------------------------------------------------------------

class TestValidateCredentials:
    """Verify validate_credentials behaviour in production and dev modes."""

    def test_production_missing_secret_exits(self) -> None:
        settings = Settings(_env_file=None, production=True)  # type: ignore[call-arg]

        with pytest.raises(SystemExit) as exc_info:
            validate_credentials(settings)

        assert exc_info.value.code == 1

    def test_production_with_secret_passes(self) -> None:
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            token_secret="s3cret",  # type: ignore[arg-type]
        )

        # Should NOT raise or exit
        validate_credentials(settings)

    def test_dev_mode_warns_without_exiting(self) -> None:
        settings = Settings(_env_file=None, production=False)  # type: ignore[call-arg]

        validate_credentials(settings)


# ---------------------------------------------------------------------------
# get_settings cache
# ---------------------------------------------------------------------------

class TestGetSettingsCached:
    """Verify lru_cache on get_settings."""

    def test_get_settings_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PRODUCTION", raising=False)

        first = get_settings()
        second = get_settings()

        assert first is second

    def test_invalid_env_exits(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTP_PORT", "not-a-port")

        with pytest.raises(SystemExit):
            get_settings()
