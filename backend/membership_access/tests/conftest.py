"""
Root test configuration and fixtures.

Provides database fixtures that can be used by all tests, plus factories
for profiles, modules and lessons.

- db_session: per-test session, everything rolled back afterwards
- temp_config_dir / make_yaml_config: YAML config files for the alias loader
"""

import os
import tempfile
import uuid
import pytest
import yaml
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from membership_access.entitlements.loader import reset_license_tier_loader
from membership_access.entitlements import resolver as resolver_module

# Set test environment
os.environ.setdefault("ENV", "test")


def _get_test_database_url() -> str:
    """Get database URL for tests."""
    database_url = os.getenv("DATABASE_URL")

    if database_url:
        # Handle Render's postgres:// URL format
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        return database_url

    # Default to SQLite for unit tests if no PostgreSQL available
    return "sqlite:///:memory:"


def _is_postgres() -> bool:
    """Check if using PostgreSQL."""
    url = _get_test_database_url()
    return url.startswith("postgresql")


@pytest.fixture(scope="session")
def db_engine():
    """
    Create database engine for tests.

    Uses PostgreSQL if DATABASE_URL is set, otherwise SQLite in-memory.
    """
    database_url = _get_test_database_url()

    if _is_postgres():
        try:
            engine = create_engine(database_url, pool_pre_ping=True)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            pytest.skip(
                f"PostgreSQL not available. Set DATABASE_URL or use SQLite. Error: {e}"
            )
    else:
        # SQLite in-memory for fast unit tests
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        # pysqlite needs its own transaction handling turned off for SAVEPOINT
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

    # Import and create all tables
    from membership_access.db_base import Base
    from membership_access.models import profile, training, training_access  # noqa: F401
    from membership_access.models import developer_license  # noqa: F401

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Create database session with transaction rollback for test isolation.

    Code under test commits freely: each commit only releases a SAVEPOINT
    inside the outer transaction, which is rolled back after the test.
    """
    connection = db_engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=connection,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(autouse=True)
def _fresh_entitlement_singletons():
    """Each test starts with the alias table and resolver re-read from config."""
    reset_license_tier_loader()
    resolver_module._default_resolver = None
    yield
    reset_license_tier_loader()
    resolver_module._default_resolver = None


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "security: mark test as security-focused")


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_profile(db_session):
    """Factory fixture that persists a profile."""
    def _make(license="none", role="client", email=None, license_valid_until=None):
        from membership_access.models.profile import Profile

        profile = Profile(
            id=str(uuid.uuid4()),
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            role=role,
            license=license,
            license_valid_until=license_valid_until,
        )
        db_session.add(profile)
        db_session.flush()
        return profile
    return _make


@pytest.fixture
def make_module(db_session):
    """Factory fixture that persists a training module."""
    def _make(required_license="starter", is_active=True, title=None, position=0):
        from membership_access.models.training import TrainingModule

        module = TrainingModule(
            id=str(uuid.uuid4()),
            title=title or f"Module {uuid.uuid4().hex[:6]}",
            required_license=required_license,
            is_active=is_active,
            position=position,
        )
        db_session.add(module)
        db_session.flush()
        return module
    return _make


@pytest.fixture
def make_lesson(db_session):
    """Factory fixture that persists a lesson in a module."""
    def _make(module, is_preview=False, bunny_video_id="video-abc", title=None):
        from membership_access.models.training import TrainingLesson

        lesson = TrainingLesson(
            id=str(uuid.uuid4()),
            module_id=module.id,
            title=title or "Lesson",
            bunny_video_id=bunny_video_id,
            is_preview=is_preview,
        )
        db_session.add(lesson)
        db_session.flush()
        return lesson
    return _make


@pytest.fixture
def fixed_now():
    return datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Config Fixtures
# =============================================================================


@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for YAML config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_yaml_config(temp_config_dir):
    """
    Factory fixture that writes a YAML config file and returns its path.

    Usage:
        config_path = make_yaml_config("license_tiers.yml", {"aliases": {...}})
    """
    def _make(filename: str, config: dict) -> Path:
        config_path = temp_config_dir / filename
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(config, f, allow_unicode=True)
        return config_path
    return _make
