"""
Alembic migration environment.

Run from the fulbo/ directory:
    alembic upgrade head
    alembic revision --autogenerate -m "describe change"

The URL is taken from fulbo.database.db so STORAGE_BACKEND selects the
same driver the API uses. SQLite needs batch mode for ALTER TABLE.
"""

from logging.config import fileConfig
import asyncio
import logging
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine
from alembic import context

from fulbo.database.db import Base, DATABASE_URL
from fulbo.database import models  # noqa: F401  registers tables on Base.metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

IS_SQLITE = DATABASE_URL.startswith("sqlite")


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=Base.metadata,
        render_as_batch=IS_SQLITE,
        compare_type=True,
        **kwargs,
    )
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_with_engine() -> None:
    engine = create_async_engine(DATABASE_URL, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(lambda conn: _configure(connection=conn))
    finally:
        await engine.dispose()


if context.is_offline_mode():
    # Emit SQL without a connection
    _configure(url=DATABASE_URL, literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    logger.info(f"Migrating {DATABASE_URL.rsplit('@', 1)[-1]}")
    asyncio.run(_migrate_with_engine())
