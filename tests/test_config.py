"""Settings tests — database URL handling."""

import pytest
from pydantic import ValidationError

from slabrelay.config import Settings


@pytest.mark.parametrize(
    "url",
    [
        "postgres://u:p@db:5432/inventory",
        "postgresql://u:p@db:5432/inventory",
        "postgresql+asyncpg://u:p@db:5432/inventory",
    ],
)
def test_database_url_normalized_for_asyncpg(monkeypatch, url):
    monkeypatch.setenv("SLABRELAY_DATABASE_URL", url)
    s = Settings()

    assert s.database_url == "postgresql+asyncpg://u:p@db:5432/inventory"
    assert s.asyncpg_dsn == "postgresql://u:p@db:5432/inventory"


def test_plain_database_url_env_is_accepted(monkeypatch):
    monkeypatch.delenv("SLABRELAY_DATABASE_URL", raising=False)
    monkeypatch.setenv("DATABASE_URL", "postgresql://u@db/inventory")

    assert Settings().database_url == "postgresql+asyncpg://u@db/inventory"


def test_missing_database_url_fails(monkeypatch):
    monkeypatch.delenv("SLABRELAY_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(ValidationError):
        Settings()


def test_non_postgres_url_rejected(monkeypatch):
    monkeypatch.setenv("SLABRELAY_DATABASE_URL", "mysql://u@db/inventory")

    with pytest.raises(ValidationError, match="PostgreSQL"):
        Settings()


def test_relay_defaults(monkeypatch):
    monkeypatch.setenv("SLABRELAY_DATABASE_URL", "postgresql://u@db/inventory")
    s = Settings()

    assert s.subscriber_max_sessions == 5
    assert s.subscriber_acquire_timeout == 10.0
