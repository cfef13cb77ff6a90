"""Tests for settings and database URL resolution."""
import pytest

from healthwatch.config import Settings, get_database_url


class TestDatabaseUrl:
    """Tests for get_database_url."""

    def test_defaults_to_sqlite_in_data_path(self) -> None:
        assert get_database_url(Settings(data_path="/srv/hw")) == "sqlite+aiosqlite:////srv/hw/healthwatch.db"

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("postgres://u:p@db/hw", "postgresql+asyncpg://u:p@db/hw"),
            ("postgresql://u:p@db/hw", "postgresql+asyncpg://u:p@db/hw"),
            ("postgresql+asyncpg://u:p@db/hw", "postgresql+asyncpg://u:p@db/hw"),
            ("sqlite+aiosqlite:///tmp/x.db", "sqlite+aiosqlite:///tmp/x.db"),
        ],
    )
    def test_explicit_url(self, url, expected) -> None:
        assert get_database_url(Settings(database_url=url)) == expected


def test_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("HEALTHWATCH_MAX_CONCURRENT_CHECKS", "0")
    monkeypatch.setenv("HEALTHWATCH_RUN_INTERVAL_SECONDS", "60")

    config = Settings()

    assert config.max_concurrent_checks == 0
    assert config.run_interval_seconds == 60
    assert config.user_agent.startswith("healthwatch/")
