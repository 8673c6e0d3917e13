"""
Database engine and sessions.

One engine per process, built lazily from DATABASE_URL. Routes get a
request-scoped session through get_db_session; workers iterate
get_db_session_sync.

Configuration:
- DATABASE_URL: postgres:// and postgresql:// URLs, or sqlite:/// for local runs
- DB_POOL_SIZE: Pooled connections per process (default: 5)
- DB_MAX_OVERFLOW: Extra connections under load (default: 10)
"""

import os
import logging
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def _get_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable is not set")

    # SQLAlchemy only accepts the postgresql:// scheme
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    return database_url


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
        "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "10")),
        "pool_pre_ping": True,
        "pool_recycle": 1800,
    }


def get_engine() -> Engine:
    """Engine singleton; raises ValueError when DATABASE_URL is missing."""
    global _engine
    if _engine is None:
        database_url = _get_database_url()
        _engine = create_engine(database_url, **_engine_options(database_url))
        logger.info(
            "Database engine created",
            extra={"dialect": _engine.dialect.name},
        )
    return _engine


def get_session_factory() -> sessionmaker:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def reset_engine() -> None:
    """Dispose the engine so the next session re-reads DATABASE_URL."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_db_session() -> Generator[Session, None, None]:
    """
    FastAPI dependency: one session per request, closed afterwards.

    Routes commit explicitly; anything left uncommitted is discarded on
    close. A missing DATABASE_URL surfaces as 503.
    """
    try:
        SessionLocal = get_session_factory()
    except ValueError as e:
        logger.error("Database not configured", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured"
        )

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_db_session_sync() -> Generator[Session, None, None]:
    """
    Session generator for workers.

    Usage:
        db_gen = get_db_session_sync()
        db = next(db_gen)
        try:
            ...
        finally:
            db_gen.close()
    """
    try:
        SessionLocal = get_session_factory()
    except ValueError as e:
        raise RuntimeError(f"Database not configured: {e}")

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
