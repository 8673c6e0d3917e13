"""
Tests for engine and session construction from DATABASE_URL.
"""

import pytest
from fastapi import HTTPException
from sqlalchemy import text

from membership_access.database import session as db_session_module


@pytest.fixture(autouse=True)
def _reset_engine():
    db_session_module.reset_engine()
    yield
    db_session_module.reset_engine()


class TestDatabaseUrl:
    def test_postgres_scheme_is_normalized(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db.example.com/app")
        assert db_session_module._get_database_url() == "postgresql://u:p@db.example.com/app"

    def test_missing_url_raises(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ValueError):
            db_session_module._get_database_url()

    def test_pool_options_from_env(self, monkeypatch):
        monkeypatch.setenv("DB_POOL_SIZE", "2")
        options = db_session_module._engine_options("postgresql://u:p@host/app")
        assert options["pool_size"] == 2
        assert options["pool_pre_ping"] is True

    def test_sqlite_options_skip_pool_sizing(self):
        options = db_session_module._engine_options("sqlite:///local.db")
        assert "pool_size" not in options


class TestSessions:
    def test_request_session_is_503_without_database(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(HTTPException) as exc_info:
            next(db_session_module.get_db_session())
        assert exc_info.value.status_code == 503

    def test_worker_session_raises_without_database(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(RuntimeError):
            next(db_session_module.get_db_session_sync())

    def test_sqlite_session(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite://")
        db_gen = db_session_module.get_db_session_sync()
        db = next(db_gen)
        try:
            assert db.execute(text("SELECT 1")).scalar() == 1
        finally:
            db_gen.close()

    def test_engine_is_reused_until_reset(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite://")
        engine = db_session_module.get_engine()
        assert db_session_module.get_engine() is engine

        db_session_module.reset_engine()
        assert db_session_module.get_engine() is not engine
