"""
Tests for settings loading.
"""

import pydantic
import pytest

from finsync.config import (
    AuthSettings,
    DatabaseSettings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)


class TestDatabaseSettings:

    def test_default_is_async_sqlite(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        assert DatabaseSettings().url.startswith("sqlite+aiosqlite://")

    def test_sync_driver_rejected(self):
        """Test that a URL without an async driver is refused at load time."""
        with pytest.raises(pydantic.ValidationError):
            DatabaseSettings(url="postgresql://localhost/finsync")

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://db/finsync")
        assert DatabaseSettings().url == "postgresql+asyncpg://db/finsync"


class TestAuthSettings:

    def test_secret_from_environment(self):
        settings = AuthSettings()
        assert len(settings.jwt_secret) >= 16
        assert settings.jwt_algorithm == "HS256"

    def test_short_secret_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            AuthSettings(jwt_secret="short")


class TestSyncSettings:

    def test_defaults(self):
        settings = SyncSettings()
        assert settings.recent_transactions_limit == 5
        assert settings.max_batch_size == 500

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SYNC_RECENT_TRANSACTIONS_LIMIT", "10")
        assert SyncSettings().recent_transactions_limit == 10


class TestValidateAllSettings:

    def test_all_valid(self):
        results = validate_all_settings()
        assert results["database"] is True
        assert results["auth"] is True

    def test_reports_broken_section(self, monkeypatch):
        """Test that a bad section is reported instead of raising."""
        monkeypatch.setenv("AUTH_JWT_SECRET", "short")
        get_settings.cache_clear()

        results = validate_all_settings()

        assert results["auth"] is False
        assert "auth_error" in results
        assert results["sync"] is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
