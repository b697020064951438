from backoffice.core.config import Settings, settings
from backoffice.core.database import _create_engine


def test_settings_loaded():
    assert settings.HOST == "0.0.0.0"
    assert settings.PORT == 8000
    assert settings.LOW_STOCK_THRESHOLD == 100
    assert settings.IMPORT_HISTORY_LIMIT == 50


def test_database_url():
    assert "sqlite" in settings.DATABASE_URL


def test_postgres_host_builds_url():
    config = Settings(POSTGRES_HOST="db", POSTGRES_USER="app", POSTGRES_PASSWORD="pw", POSTGRES_DB="shop")
    assert config.effective_database_url == "postgresql+asyncpg://app:pw@db:5432/shop"


def test_cors_origins_from_comma_list():
    config = Settings(CORS_ORIGINS="http://a.test, http://b.test")
    assert config.CORS_ORIGINS == ["http://a.test", "http://b.test"]


def test_sqlite_url_uses_async_driver():
    engine = _create_engine("sqlite:///./scratch.db")
    assert engine.url.drivername == "sqlite+aiosqlite"
    engine = _create_engine("sqlite+aiosqlite:///./scratch.db")
    assert engine.url.drivername == "sqlite+aiosqlite"
