"""
Runtime settings: key/value rows in the `settings` table that override env vars.

Lookups go database -> Redis cache -> environment -> default. The cache is
shared by every API instance and is optional; when Redis is down lookups go
straight to the next source.

Also owns the globally active voting month.
"""

import os
import logging
from typing import Optional, Dict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis
from dotenv import load_dotenv
from fulbo.database.db import upsert_statement
from fulbo.database.models import Setting
from fulbo.utils.constants import (
    MAX_MONTHS_AHEAD,
    SETTING_CURRENT_MONTH,
    SETTING_CURRENT_YEAR,
)
from fulbo.utils.datetime_utils import (
    utcnow,
    get_next_available_month,
    months_between,
)

load_dotenv()

logger = logging.getLogger(__name__)

TRUTHY = ("true", "1", "yes")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in TRUTHY


def get_bool_env(key: str, default: bool = True) -> bool:
    """Read a true/false environment variable ("true", "1" and "yes" are true)."""
    value = os.getenv(key)
    return default if value is None else _parse_bool(value)


# ---------------------------------------------------------------------------
# Redis cache
# ---------------------------------------------------------------------------

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
CACHE_ENABLED = get_bool_env("SETTINGS_CACHE_ENABLED", default=True)
CACHE_TTL_SECONDS = 60
CACHE_PREFIX = "fulbo:settings:"

_cache: Optional[Redis] = None


async def get_redis_client() -> Optional[Redis]:
    """
    Shared Redis client, connected on first use.

    Returns:
        The client, or None when caching is off or Redis is unreachable
    """
    global _cache
    if not CACHE_ENABLED:
        return None
    if _cache is not None:
        return _cache

    client = Redis(
        host=REDIS_HOST,
        port=REDIS_PORT,
        db=REDIS_DB,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    try:
        await client.ping()
    except Exception as e:
        logger.warning(f"Settings cache unavailable ({REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}): {e}")
        await client.aclose()
        return None

    logger.info(f"Settings cache connected to {REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}")
    _cache = client
    return _cache


async def _drop_cache_client() -> None:
    """Forget a client that failed; the next lookup reconnects."""
    global _cache
    client, _cache = _cache, None
    if client is not None:
        try:
            await client.aclose()
        except Exception as e:
            logger.warning(f"Error closing settings cache client: {e}")


async def _cache_get(key: str) -> Optional[str]:
    client = await get_redis_client()
    if client is None:
        return None
    try:
        return await client.get(CACHE_PREFIX + key)
    except Exception as e:
        logger.warning(f"Settings cache read failed for {key}: {e}")
        await _drop_cache_client()
        return None


async def _cache_put(key: str, value: Optional[str]) -> None:
    client = await get_redis_client()
    if client is None:
        return
    try:
        if value is None:
            await client.delete(CACHE_PREFIX + key)
        else:
            await client.setex(CACHE_PREFIX + key, CACHE_TTL_SECONDS, value)
    except Exception as e:
        logger.warning(f"Settings cache write failed for {key}: {e}")
        await _drop_cache_client()


async def close_redis_connection():
    """Close the cache client (application shutdown)."""
    if _cache is not None:
        await _drop_cache_client()
        logger.info("Settings cache connection closed")


# ---------------------------------------------------------------------------
# Settings rows
# ---------------------------------------------------------------------------


async def get_setting(session: AsyncSession, key: str) -> Optional[str]:
    """Value stored in the database for key, or None."""
    result = await session.execute(select(Setting.value).where(Setting.key == key))
    return result.scalar_one_or_none()


async def set_setting(session: AsyncSession, key: str, value: str) -> None:
    """Upsert a setting and refresh its cached value."""
    await session.execute(
        upsert_statement(
            session,
            Setting,
            {"key": key, "value": value, "updated_at": utcnow()},
            index_elements=["key"],
            update_fields=["value", "updated_at"],
        )
    )
    await session.flush()
    await _cache_put(key, value)


async def get_setting_with_fallback(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: Optional[str] = None,
    fallback_to_cache: bool = True,
) -> Optional[str]:
    """
    Resolve a setting from the first source that has it.

    Args:
        session: Database session; None skips the database
        key: Setting key
        env_var: Environment variable consulted after database and cache
        default: Value when no source has one
        fallback_to_cache: Consult Redis when the database has no value

    Returns:
        Setting value as a string, or default
    """
    if session is not None:
        try:
            value = await get_setting(session, key)
        except Exception as e:
            logger.warning(f"Could not read setting {key} from the database: {e}")
            value = None
        if value is not None:
            await _cache_put(key, value)
            return value

    if fallback_to_cache:
        value = await _cache_get(key)
        if value is not None:
            return value

    if env_var and os.getenv(env_var) is not None:
        return os.getenv(env_var)
    return default


async def get_bool_setting(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: bool = True,
    fallback_to_cache: bool = True,
) -> bool:
    """Boolean flavour of get_setting_with_fallback."""
    value = await get_setting_with_fallback(session, key, env_var, None, fallback_to_cache)
    return default if value is None else _parse_bool(value)


# ---------------------------------------------------------------------------
# Active month
# ---------------------------------------------------------------------------


async def get_active_month(session: AsyncSession) -> Dict:
    """
    Get the globally active voting month.

    Falls back to the next month with a Sunday still ahead when unset or corrupt.

    Returns:
        Dict with month and year
    """
    month = await get_setting_with_fallback(session, SETTING_CURRENT_MONTH)
    year = await get_setting_with_fallback(session, SETTING_CURRENT_YEAR)
    try:
        if month is not None and year is not None:
            month_int, year_int = int(month), int(year)
            if 1 <= month_int <= 12:
                return {"month": month_int, "year": year_int}
    except ValueError:
        logger.warning(f"Invalid active month settings: month={month}, year={year}")

    default_year, default_month = get_next_available_month()
    return {"month": default_month, "year": default_year}


async def set_active_month(session: AsyncSession, month: int, year: int) -> Dict:
    """
    Set the globally active voting month.

    Raises:
        ValueError: If the month is out of range, in the past or too far ahead
    """
    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")

    today = utcnow().date()
    offset = months_between(today.year, today.month, year, month)
    if offset < 0:
        raise ValueError("Cannot activate a past month")
    if offset > MAX_MONTHS_AHEAD:
        raise ValueError(f"Cannot activate a month more than {MAX_MONTHS_AHEAD} months ahead")

    await set_setting(session, SETTING_CURRENT_MONTH, str(month))
    await set_setting(session, SETTING_CURRENT_YEAR, str(year))
    logger.info(f"Active month set to {month}/{year}")
    return {"month": month, "year": year}
