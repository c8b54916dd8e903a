"""
Unit tests for settings service and the globally active month.
"""

import pytest

from fulbo.services import settings_service
from fulbo.utils.datetime_utils import add_months, get_next_available_month, utcnow


def test_get_bool_env(monkeypatch):
    monkeypatch.setenv("FULBO_FLAG", "yes")
    assert settings_service.get_bool_env("FULBO_FLAG") is True
    monkeypatch.setenv("FULBO_FLAG", "off")
    assert settings_service.get_bool_env("FULBO_FLAG") is False
    monkeypatch.delenv("FULBO_FLAG")
    assert settings_service.get_bool_env("FULBO_FLAG", default=False) is False


@pytest.mark.asyncio
async def test_set_and_get_setting(db_session):
    assert await settings_service.get_setting(db_session, "log_level") is None

    await settings_service.set_setting(db_session, "log_level", "DEBUG")
    assert await settings_service.get_setting(db_session, "log_level") == "DEBUG"

    await settings_service.set_setting(db_session, "log_level", "WARNING")
    assert await settings_service.get_setting(db_session, "log_level") == "WARNING"


@pytest.mark.asyncio
async def test_setting_fallback_order(db_session, monkeypatch):
    monkeypatch.setenv("FULBO_TEST_VALUE", "from-env")

    value = await settings_service.get_setting_with_fallback(
        db_session, "test_value", env_var="FULBO_TEST_VALUE", default="fallback"
    )
    assert value == "from-env"

    await settings_service.set_setting(db_session, "test_value", "from-db")
    value = await settings_service.get_setting_with_fallback(
        db_session, "test_value", env_var="FULBO_TEST_VALUE", default="fallback"
    )
    assert value == "from-db"

    value = await settings_service.get_setting_with_fallback(db_session, "missing", default="fallback")
    assert value == "fallback"


@pytest.mark.asyncio
async def test_bool_setting(db_session):
    await settings_service.set_setting(db_session, "enable_email", "false")
    assert await settings_service.get_bool_setting(db_session, "enable_email") is False
    assert await settings_service.get_bool_setting(db_session, "unknown_flag", default=True) is True


@pytest.mark.asyncio
async def test_active_month_defaults_to_next_available(db_session):
    year, month = get_next_available_month()
    assert await settings_service.get_active_month(db_session) == {"month": month, "year": year}


@pytest.mark.asyncio
async def test_set_active_month(db_session):
    today = utcnow().date()
    year, month = add_months(today.year, today.month, 1)

    assert await settings_service.set_active_month(db_session, month, year) == {
        "month": month,
        "year": year,
    }
    assert await settings_service.get_active_month(db_session) == {"month": month, "year": year}


@pytest.mark.asyncio
async def test_set_active_month_validation(db_session):
    today = utcnow().date()
    past_year, past_month = add_months(today.year, today.month, -1)
    far_year, far_month = add_months(today.year, today.month, 4)

    with pytest.raises(ValueError, match="between 1 and 12"):
        await settings_service.set_active_month(db_session, 13, today.year)
    with pytest.raises(ValueError, match="past month"):
        await settings_service.set_active_month(db_session, past_month, past_year)
    with pytest.raises(ValueError, match="months ahead"):
        await settings_service.set_active_month(db_session, far_month, far_year)


@pytest.mark.asyncio
async def test_corrupt_active_month_falls_back(db_session):
    await settings_service.set_setting(db_session, "current_month", "banana")
    await settings_service.set_setting(db_session, "current_year", "2025")

    year, month = get_next_available_month()
    assert await settings_service.get_active_month(db_session) == {"month": month, "year": year}
