"""Tests for engine configuration."""
from core.config import Settings
from db.session import engine_options


def test__engine_options__postgres_pool_from_settings() -> None:
    settings = Settings(
        database_url="postgresql+asyncpg://u:p@db.example.com/bookmarks",
        db_pool_size=12,
        db_max_overflow=3,
        dev_mode=False,
    )
    options = engine_options(settings)
    assert options["pool_size"] == 12
    assert options["max_overflow"] == 3
    assert options["pool_pre_ping"] is True


def test__engine_options__sqlite_has_no_pool_sizing() -> None:
    options = engine_options(Settings(database_url="sqlite+aiosqlite:///:memory:"))
    assert "pool_size" not in options
    assert "max_overflow" not in options
