"""
Tests for application configuration.
"""

import logging
import os
from unittest.mock import patch

import pytest

STRONG_ACCESS = "a" * 48
STRONG_REFRESH = "r" * 48


class TestAppModeEnum:
    """Tests for AppMode enum."""

    def test_app_mode_values(self):
        from config import AppMode

        assert AppMode.DEV.value == "dev"
        assert AppMode.PROD.value == "prod"

    def test_app_mode_from_string(self):
        from config import AppMode

        assert AppMode("dev") == AppMode.DEV
        assert AppMode("prod") == AppMode.PROD


class TestSettingsDefaults:
    """Tests for Settings default values."""

    def test_default_app_mode(self):
        with patch.dict(os.environ, {}, clear=True):
            from config import AppMode, Settings

            assert Settings().APP_MODE == AppMode.DEV

    def test_default_database_url(self):
        """Default database URL is SQLite."""
        with patch.dict(os.environ, {}, clear=True):
            from config import Settings

            assert "sqlite" in Settings().DATABASE_URL

    def test_token_lifetimes(self):
        with patch.dict(os.environ, {}, clear=True):
            from config import Settings

            settings = Settings()
            assert settings.ACCESS_TOKEN_EXPIRE_MINUTES == 15
            assert settings.REFRESH_TOKEN_EXPIRE_DAYS == 7
            assert settings.ACCESS_TOKEN_MAX_AGE == 900
            assert settings.REFRESH_TOKEN_MAX_AGE == 604800

    def test_default_secrets_differ(self):
        with patch.dict(os.environ, {}, clear=True):
            from config import Settings

            settings = Settings()
            assert settings.JWT_ACCESS_SECRET != settings.JWT_REFRESH_SECRET

    def test_default_bcrypt_rounds(self):
        with patch.dict(os.environ, {}, clear=True):
            from config import Settings

            assert Settings().BCRYPT_ROUNDS == 12

    def test_cookies_not_secure_in_dev(self):
        with patch.dict(os.environ, {}, clear=True):
            from config import Settings

            assert Settings().COOKIE_SECURE is False


class TestSettingsFromEnv:
    """Tests for Settings loading from environment variables."""

    def test_app_mode_from_env(self):
        with patch.dict(os.environ, {"APP_MODE": "prod"}, clear=True):
            from config import AppMode, Settings

            settings = Settings()
            assert settings.APP_MODE == AppMode.PROD
            assert settings.COOKIE_SECURE is True

    def test_secrets_from_env(self):
        env = {"JWT_ACCESS_SECRET": STRONG_ACCESS, "JWT_REFRESH_SECRET": STRONG_REFRESH}
        with patch.dict(os.environ, env, clear=True):
            from config import Settings

            settings = Settings()
            assert settings.JWT_ACCESS_SECRET == STRONG_ACCESS
            assert settings.JWT_REFRESH_SECRET == STRONG_REFRESH

    def test_token_lifetimes_from_env(self):
        env = {"ACCESS_TOKEN_EXPIRE_MINUTES": "5", "REFRESH_TOKEN_EXPIRE_DAYS": "30"}
        with patch.dict(os.environ, env, clear=True):
            from config import Settings

            settings = Settings()
            assert settings.ACCESS_TOKEN_MAX_AGE == 300
            assert settings.REFRESH_TOKEN_MAX_AGE == 30 * 86400


class TestCorsOrigins:
    def test_dev_includes_localhost(self):
        with patch.dict(os.environ, {}, clear=True):
            from config import Settings

            assert "http://localhost:3000" in Settings().CORS_ORIGINS

    def test_configured_origins_are_split(self):
        env = {"CORS_ALLOWED_ORIGINS": "https://shop.example.org, https://admin.example.org"}
        with patch.dict(os.environ, env, clear=True):
            from config import Settings

            origins = Settings().CORS_ORIGINS
            assert "https://shop.example.org" in origins
            assert "https://admin.example.org" in origins

    def test_prod_has_only_configured_origins(self):
        env = {"APP_MODE": "prod", "CORS_ALLOWED_ORIGINS": "https://shop.example.org"}
        with patch.dict(os.environ, env, clear=True):
            from config import Settings

            assert Settings().CORS_ORIGINS == ["https://shop.example.org"]


class TestValidateSettings:
    """Tests for fail-fast security validation."""

    def test_dev_defaults_pass(self):
        with patch.dict(os.environ, {}, clear=True):
            from config import Settings, _validate_settings

            settings = Settings()
            assert _validate_settings(settings) is settings

    def test_equal_secrets_rejected_in_any_mode(self):
        env = {"JWT_ACCESS_SECRET": STRONG_ACCESS, "JWT_REFRESH_SECRET": STRONG_ACCESS}
        with patch.dict(os.environ, env, clear=True):
            from config import Settings, _validate_settings

            with pytest.raises(ValueError, match="must be different"):
                _validate_settings(Settings())

    def test_prod_rejects_default_secrets(self):
        with patch.dict(os.environ, {"APP_MODE": "prod"}, clear=True):
            from config import Settings, _validate_settings

            with pytest.raises(ValueError, match="Default JWT secret"):
                _validate_settings(Settings())

    def test_prod_rejects_debug(self):
        env = {
            "APP_MODE": "prod",
            "DEBUG": "true",
            "JWT_ACCESS_SECRET": STRONG_ACCESS,
            "JWT_REFRESH_SECRET": STRONG_REFRESH,
        }
        with patch.dict(os.environ, env, clear=True):
            from config import Settings, _validate_settings

            with pytest.raises(ValueError, match="DEBUG=True"):
                _validate_settings(Settings())

    def test_prod_warns_on_short_secret(self, caplog):
        env = {"APP_MODE": "prod", "JWT_ACCESS_SECRET": "short", "JWT_REFRESH_SECRET": STRONG_REFRESH}
        with patch.dict(os.environ, env, clear=True):
            from config import Settings, _validate_settings

            with caplog.at_level(logging.WARNING, logger="config"):
                _validate_settings(Settings())

        assert "JWT_ACCESS_SECRET appears to be weak" in caplog.text

    def test_valid_prod_settings(self):
        env = {"APP_MODE": "prod", "JWT_ACCESS_SECRET": STRONG_ACCESS, "JWT_REFRESH_SECRET": STRONG_REFRESH}
        with patch.dict(os.environ, env, clear=True):
            from config import Settings, _validate_settings

            assert _validate_settings(Settings()).COOKIE_SECURE is True
