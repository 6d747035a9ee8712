"""
tests/test_config.py -- Unit tests for Settings validation and TokenConfig.

Settings are instantiated directly (not via get_settings()) so each test sees
its own environment through monkeypatch. _env_file=None keeps a developer's
local .env out of the picture.
"""

from __future__ import annotations

import dataclasses

import pytest
from pydantic import ValidationError

from core.config import Settings, TokenConfig

GOOD_KEY = "k" * 32


class TestSecretKeyPolicy:
    def test_production_requires_key(self, monkeypatch) -> None:
        monkeypatch.setenv("DEBUG", "false")
        monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
        with pytest.raises(ValidationError, match="JWT_SECRET_KEY is required"):
            Settings(_env_file=None)

    def test_debug_generates_key(self, monkeypatch) -> None:
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
        settings = Settings(_env_file=None)
        assert len(settings.jwt_secret_key) >= 32

    def test_short_key_rejected(self, monkeypatch) -> None:
        monkeypatch.setenv("JWT_SECRET_KEY", "too-short")
        with pytest.raises(ValidationError, match="at least 32"):
            Settings(_env_file=None)


class TestDefaults:
    def test_token_defaults(self, monkeypatch) -> None:
        monkeypatch.setenv("JWT_SECRET_KEY", GOOD_KEY)
        for name in ("JWT_ACCESS_TOKEN_DURATION", "JWT_REFRESH_TOKEN_DURATION", "JWT_ISSUER"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.jwt_access_token_duration == 900
        assert settings.jwt_refresh_token_duration == 604800
        assert settings.jwt_issuer == "sessiongate"

    def test_env_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("JWT_SECRET_KEY", GOOD_KEY)
        monkeypatch.setenv("JWT_ACCESS_TOKEN_DURATION", "60")
        monkeypatch.setenv("TOKEN_CLEANUP_INTERVAL_HOURS", "0")
        settings = Settings(_env_file=None)
        assert settings.jwt_access_token_duration == 60
        assert settings.token_cleanup_interval_hours == 0

    def test_non_positive_ttl_rejected(self, monkeypatch) -> None:
        monkeypatch.setenv("JWT_SECRET_KEY", GOOD_KEY)
        monkeypatch.setenv("JWT_REFRESH_TOKEN_DURATION", "0")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestTokenConfig:
    def test_from_settings(self, monkeypatch) -> None:
        monkeypatch.setenv("JWT_SECRET_KEY", GOOD_KEY)
        monkeypatch.setenv("JWT_ACCESS_TOKEN_DURATION", "120")
        monkeypatch.setenv("JWT_REFRESH_TOKEN_DURATION", "240")
        monkeypatch.setenv("JWT_ISSUER", "unit")
        config = TokenConfig.from_settings(Settings(_env_file=None))
        assert config == TokenConfig(secret_key=GOOD_KEY, access_ttl_seconds=120, refresh_ttl_seconds=240, issuer="unit")

    def test_immutable(self) -> None:
        config = TokenConfig(secret_key=GOOD_KEY)
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.secret_key = "other"
