"""
Tests for Environment Configuration

Run with: pytest tests/test_config.py -v
"""

from api.config import (
    DEFAULT_ALLOWED_ORIGINS,
    DEFAULT_DATABASE_URL,
    Settings,
    normalize_database_url,
    parse_origins,
)


class TestDatabaseUrl:

    def test_plain_postgres_uses_asyncpg(self):
        assert normalize_database_url("postgresql://u:p@db:5432/x") == "postgresql+asyncpg://u:p@db:5432/x"

    def test_legacy_postgres_scheme(self):
        assert normalize_database_url("postgres://u:p@db/x") == "postgresql+asyncpg://u:p@db/x"

    def test_explicit_driver_untouched(self):
        url = "sqlite+aiosqlite:///tmp/test.db"
        assert normalize_database_url(url) == url


class TestOrigins:

    def test_default_when_unset(self):
        assert parse_origins(None) == DEFAULT_ALLOWED_ORIGINS
        assert parse_origins("") == DEFAULT_ALLOWED_ORIGINS

    def test_comma_separated(self):
        assert parse_origins(" http://a.test , http://b.test,, ") == ("http://a.test", "http://b.test")


class TestSettingsFromEnv:

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "CORS_ALLOWED_ORIGINS", "LOG_LEVEL", "DEBUG",
                     "AUTO_CREATE_TABLES", "DERIVE_SINGLE_FLIGHT", "API_PORT", "PORT"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.allowed_origins == DEFAULT_ALLOWED_ORIGINS
        assert settings.log_level == "INFO"
        assert settings.port == 3000
        assert not settings.debug
        assert not settings.single_flight

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db/nanovna")
        monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "http://dash.test")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("DERIVE_SINGLE_FLIGHT", "true")
        monkeypatch.setenv("AUTO_CREATE_TABLES", "TRUE")
        monkeypatch.setenv("API_PORT", "8080")

        settings = Settings.from_env()

        assert settings.database_url == "postgresql+asyncpg://u:p@db/nanovna"
        assert settings.origin_list == ["http://dash.test"]
        assert settings.log_level == "DEBUG"
        assert settings.single_flight
        assert settings.auto_create_tables
        assert settings.port == 8080
