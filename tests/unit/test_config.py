"""Tests for configuration."""

from taakbeheer.core.config import Constants, Settings


def test_defaults() -> None:
    """Test governance defaults."""
    settings = Settings()

    assert settings.bestuur_role_alias == "Bestuur"
    assert settings.enable_notifications is True


def test_reads_prefixed_environment(monkeypatch) -> None:
    """Test settings are read from TAAKBEHEER_ variables."""
    monkeypatch.setenv("TAAKBEHEER_SQLITE_DB_PATH", "/tmp/other.db")
    monkeypatch.setenv("TAAKBEHEER_DB_TIMEOUT_SECONDS", "1.5")

    settings = Settings()

    assert settings.sqlite_db_path == "/tmp/other.db"
    assert settings.db_timeout_seconds == 1.5


def test_open_tasks_list_limit() -> None:
    assert Constants.OPEN_TASKS_LIST_LIMIT == 200
