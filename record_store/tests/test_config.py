"""
Configuration Tests
"""

import pytest

from record_store.core.config import Settings, normalize_database_url


@pytest.mark.parametrize(
    "url, expected",
    [
        ("postgresql://u:p@host/db", "postgresql+psycopg://u:p@host/db"),
        ("postgres://u:p@host/db", "postgresql+psycopg://u:p@host/db"),
        ("postgresql+psycopg://u:p@host/db", "postgresql+psycopg://u:p@host/db"),
        ("sqlite:///./store.db", "sqlite:///./store.db"),
    ],
)
def test_normalize_database_url(url, expected):
    assert normalize_database_url(url) == expected


def test_defaults(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = Settings(_env_file=None)

    assert config.DATABASE_URL.startswith("sqlite")
    assert config.SQLALCHEMY_DATABASE_URI == config.DATABASE_URL
    assert config.ENABLE_METRICS is True


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://app:pw@db/records")
    monkeypatch.setenv("DATABASE_POOL_SIZE", "3")
    monkeypatch.setenv("LOG_FORMAT", "console")

    config = Settings(_env_file=None)

    assert config.SQLALCHEMY_DATABASE_URI == "postgresql+psycopg://app:pw@db/records"
    assert config.DATABASE_POOL_SIZE == 3
    assert config.LOG_FORMAT == "console"


def test_empty_environment_value_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("DATABASE_POOL_SIZE", "")

    assert Settings(_env_file=None).DATABASE_POOL_SIZE == 10
