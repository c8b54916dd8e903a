"""
Shared pytest configuration for fulbo tests.

Runs against an in-memory SQLite database by default. Set TEST_DATABASE_URL to
run the same suite against PostgreSQL.

SAFETY: This module REFUSES to run against any non in-memory database whose
name does not contain the substring "test".
"""

import os

# Must be set before fulbo modules read their configuration
os.environ.setdefault("ENV", "test")
os.environ.setdefault("STORAGE_BACKEND", "sqlite")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SETTINGS_CACHE_ENABLED", "false")
os.environ.setdefault("ENABLE_EMAIL", "false")
os.environ.setdefault("IDENTITY_JWT_SECRET", "test-secret")

import pytest
import pytest_asyncio
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
from fulbo.database.db import Base
from fulbo.services import user_service


def _resolve_test_database_url() -> str:
    """Build the test database URL with safety checks.

    Raises ``RuntimeError`` if the resolved URL is a file or server database
    whose name does not contain "test".
    """
    url = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    if url.endswith(":memory:"):
        return url

    # ── Safety gate: database name MUST contain "test" ──────────────────
    db_name = url.rsplit("/", 1)[-1].split("?")[0]
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"\n{'=' * 70}\n"
            f"  SAFETY: Refusing to run tests against database '{db_name}'.\n"
            f"  The database name must contain 'test' to prevent accidental\n"
            f"  data loss in development or production databases.\n\n"
            f"  Resolved URL: {url}\n"
            f"{'=' * 70}"
        )
    return url


TEST_DATABASE_URL = _resolve_test_database_url()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine with all tables."""
    if TEST_DATABASE_URL.endswith(":memory:"):
        # One shared connection so every session sees the same in-memory database
        engine = create_async_engine(
            TEST_DATABASE_URL,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        from fulbo.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    # Code using db.AsyncSessionLocal() shares the test database
    from fulbo.database import db

    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """
    Create a test database session.
    Tables are cleared before each test to ensure clean state.
    """
    async with test_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(delete(table))

    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
def make_user(db_session):
    """Factory creating a user through the service, then adjusting its flags."""
    async def _make_user(user_id, is_admin=False, is_whitelisted=True, name=None):
        user = await user_service.get_or_create_user(
            db_session, user_id, email=f"{user_id}@example.com", name=name or user_id.title()
        )
        if is_admin:
            user = await user_service.set_admin(db_session, user_id, True)
        if not is_whitelisted:
            user = await user_service.set_whitelisted(db_session, user_id, False)
        return user

    return _make_user


@pytest.fixture
def make_players(make_user):
    """Factory creating count whitelisted players p01, p02..."""
    async def _make_players(count, prefix="p"):
        return [(await make_user(f"{prefix}{i:02d}"))["id"] for i in range(1, count + 1)]

    return _make_players
