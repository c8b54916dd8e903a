"""
Unit tests for user service.
"""

import pytest
from sqlalchemy import select

from fulbo.database.models import MonthlyAvailability
from fulbo.services import availability_service, user_service
from fulbo.services.user_service import UserNotFoundError
from datetime import date

TODAY = date(2025, 3, 1)


@pytest.mark.asyncio
async def test_get_or_create_user_creates_whitelisted_player(db_session):
    user = await user_service.get_or_create_user(
        db_session, "google-1", email="ana@example.com", name="Ana", image_url="https://img/ana"
    )

    assert user["id"] == "google-1"
    assert user["is_whitelisted"] is True
    assert user["is_admin"] is False
    assert user["image_url"] == "https://img/ana"


@pytest.mark.asyncio
async def test_get_or_create_user_refreshes_profile(db_session):
    await user_service.get_or_create_user(db_session, "google-1", email="ana@example.com", name="Ana")
    user = await user_service.get_or_create_user(
        db_session, "google-1", email="ana@example.com", name="Ana María"
    )

    assert user["name"] == "Ana María"
    assert len(await user_service.list_users(db_session)) == 1


@pytest.mark.asyncio
async def test_get_or_create_user_requires_email_on_first_login(db_session):
    with pytest.raises(ValueError, match="email is required"):
        await user_service.get_or_create_user(db_session, "google-1")


@pytest.mark.asyncio
async def test_name_defaults_to_email_local_part(db_session):
    user = await user_service.get_or_create_user(db_session, "google-2", email="pepe@example.com")
    assert user["name"] == "pepe"


@pytest.mark.asyncio
async def test_update_nickname(db_session, make_user):
    await make_user("u1")

    user = await user_service.update_nickname(db_session, "u1", "  Pipa  ")
    assert user["nickname"] == "Pipa"
    assert user_service.display_name(user) == "Pipa"

    user = await user_service.update_nickname(db_session, "u1", "   ")
    assert user["nickname"] is None
    assert user_service.display_name(user) == "U1"

    with pytest.raises(ValueError, match="at most 30"):
        await user_service.update_nickname(db_session, "u1", "x" * 31)


@pytest.mark.asyncio
async def test_flags_and_listing(db_session, make_user):
    await make_user("admin", is_admin=True)
    await make_user("guest", is_whitelisted=False)
    await make_user("player")

    whitelisted = {u["id"] for u in await user_service.list_users(db_session, whitelisted_only=True)}
    assert whitelisted == {"admin", "player"}

    active = [u["id"] for u in await user_service.get_active_players(db_session)]
    assert active == ["player"]

    admins = [u["id"] for u in await user_service.get_admin_users(db_session)]
    assert admins == ["admin"]


@pytest.mark.asyncio
async def test_set_flags_unknown_user(db_session):
    with pytest.raises(UserNotFoundError):
        await user_service.set_admin(db_session, "ghost", True)
    with pytest.raises(UserNotFoundError):
        await user_service.set_whitelisted(db_session, "ghost", False)


@pytest.mark.asyncio
async def test_delete_user_removes_availability(db_session, make_user):
    await make_user("u1")
    await availability_service.set_availability(db_session, "u1", 3, 2025, [9], today=TODAY)

    assert await user_service.delete_user(db_session, "u1") is True
    assert await user_service.get_user_by_id(db_session, "u1") is None

    result = await db_session.execute(
        select(MonthlyAvailability).where(MonthlyAvailability.user_id == "u1")
    )
    assert result.scalars().all() == []
    assert await user_service.delete_user(db_session, "u1") is False
