from sqlalchemy.exc import OperationalError

from schoolshop.config import settings
from schoolshop.db import base


class _PgError(Exception):
    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


def test_postgres_engine_bounds_connect_and_statement_time(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql+psycopg://app@db/schoolshop")
    monkeypatch.setattr(settings, "DB_CONNECT_TIMEOUT_SECONDS", 5)
    monkeypatch.setattr(settings, "DB_STATEMENT_TIMEOUT_MS", 2500)

    kwargs = base._engine_kwargs()

    assert kwargs["connect_args"] == {"connect_timeout": 5, "options": "-c statement_timeout=2500"}
    assert kwargs["pool_timeout"] == settings.DB_POOL_TIMEOUT


def test_sqlite_engine_keeps_busy_timeout(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", "sqlite:///./other.db")
    assert base._engine_kwargs() == {
        "connect_args": {"check_same_thread": False, "timeout": settings.DB_POOL_TIMEOUT}
    }


def test_cancelled_statement_counts_as_timeout():
    cancelled = OperationalError("SELECT 1", {}, _PgError("query canceled", "57014"))
    assert base.is_query_timeout(cancelled) is True

    locked = OperationalError("SELECT 1", {}, Exception("database is locked"))
    assert base.is_query_timeout(locked) is True


def test_lost_connection_is_not_a_timeout():
    lost = OperationalError("SELECT 1", {}, _PgError("server closed the connection unexpectedly", "08006"))
    assert base.is_query_timeout(lost) is False
