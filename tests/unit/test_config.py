"""Unit tests for configuration module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.core.config import Settings, get_settings

REQUIRED_ENV = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SECRET_KEY": "test-secret",
    "ADMIN_API_TOKEN": "test-token",
}


class TestSettings:
    """Tests for Settings class."""

    def test_settings_loads_from_environment(self) -> None:
        """Test that Settings loads values from environment variables."""
        env_vars = {
            **REQUIRED_ENV,
            "APP_NAME": "test-app",
            "APP_ENV": "testing",
            "DEBUG": "true",
            "HOST": "127.0.0.1",
            "PORT": "9000",
            "REFERENCE_PREFIX": "JR",
            "STRICT_STATUS_TRANSITIONS": "false",
            "NOTIFICATION_WORKERS": "4",
        }

        with patch.dict(os.environ, env_vars, clear=False):
            settings = Settings()

            assert settings.app_name == "test-app"
            assert settings.app_env == "testing"
            assert settings.debug is True
            assert settings.host == "127.0.0.1"
            assert settings.port == 9000
            assert settings.supabase_url == "https://test.supabase.co"
            assert settings.reference_prefix == "JR"
            assert settings.strict_status_transitions is False
            assert settings.notification_workers == 4

    def test_settings_cors_origins_list(self) -> None:
        """Test that CORS origins are correctly parsed into a list."""
        env_vars = {
            **REQUIRED_ENV,
            "CORS_ORIGINS": "http://localhost:3000, http://example.com , http://test.com",
        }

        with patch.dict(os.environ, env_vars, clear=False):
            settings = Settings()
            origins = settings.cors_origins_list

            assert len(origins) == 3
            assert "http://localhost:3000" in origins
            assert "http://example.com" in origins
            assert "http://test.com" in origins

    def test_admin_recipient_falls_back_to_sender(self) -> None:
        """Test that new-order alerts go to the sender when ADMIN_EMAIL is unset."""
        env_vars = {**REQUIRED_ENV, "ADMIN_EMAIL": "", "EMAIL_FROM_ADDRESS": "shop@example.com"}

        with patch.dict(os.environ, env_vars, clear=False):
            assert Settings().admin_recipient == "shop@example.com"

        env_vars["ADMIN_EMAIL"] = "owner@example.com"
        with patch.dict(os.environ, env_vars, clear=False):
            assert Settings().admin_recipient == "owner@example.com"

    def test_settings_default_values(self) -> None:
        """Test that default values are applied correctly."""
        with patch.dict(os.environ, REQUIRED_ENV, clear=True):
            settings = Settings(_env_file=None)

            assert settings.app_name == "reborn-orders"
            assert settings.app_env == "development"
            assert settings.debug is False
            assert settings.host == "0.0.0.0"
            assert settings.port == 8080
            assert settings.reference_prefix == "RB"
            assert settings.reference_max_attempts == 8
            assert settings.strict_status_transitions is True
            assert settings.track_rate_limit_requests == 10
            assert settings.max_reply_attachments == 5

    def test_settings_validation_error_missing_required(self) -> None:
        """Test that validation errors are raised for missing required fields."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)

            error_fields = [e["loc"][0] for e in exc_info.value.errors()]
            assert "supabase_url" in error_fields
            assert "supabase_secret_key" in error_fields
            assert "admin_api_token" in error_fields


class TestGetSettings:
    """Tests for get_settings function."""

    def test_get_settings_returns_cached_singleton(self) -> None:
        """Test that get_settings returns the same cached instance."""
        get_settings.cache_clear()

        settings1 = get_settings()
        settings2 = get_settings()

        assert isinstance(settings1, Settings)
        assert settings1 is settings2

        get_settings.cache_clear()

    def test_get_settings_cache_can_be_cleared(self) -> None:
        """Test that cache can be cleared to reload settings."""
        get_settings.cache_clear()

        settings1 = get_settings()
        get_settings.cache_clear()
        settings2 = get_settings()

        assert settings1 is not settings2

        get_settings.cache_clear()
