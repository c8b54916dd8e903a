"""
User service layer for member accounts.
"""

from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from fulbo.database.models import (
    User,
    MonthlyAvailability,
    ReminderStatus,
    MvpVoteStatus,
)
from fulbo.utils.datetime_utils import utcnow
import logging

logger = logging.getLogger(__name__)

NICKNAME_MAX_LENGTH = 30


class UserNotFoundError(ValueError):
    """Raised when a user id does not match any record."""


def _user_to_dict(user: User) -> Dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "nickname": user.nickname,
        "image_url": user.image_url,
        "is_admin": user.is_admin,
        "is_whitelisted": user.is_whitelisted,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


def display_name(user: Dict) -> str:
    """Nickname when set, otherwise the full name."""
    return user.get("nickname") or user.get("name") or user.get("email") or user.get("id")


async def get_user_by_id(session: AsyncSession, user_id: str) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: Identity provider user id

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_or_create_user(
    session: AsyncSession,
    user_id: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Dict:
    """
    Get the user for an authenticated identity, creating it on first login.

    New users are whitelisted and not admin. Profile fields from the identity
    provider refresh the stored ones when they change.

    Returns:
        User dictionary
    """
    if not user_id:
        raise ValueError("user_id is required")

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        if not email:
            raise ValueError("email is required to create a user")
        user = User(
            id=user_id,
            email=email,
            name=name or email.split("@")[0],
            image_url=image_url,
            is_admin=False,
            is_whitelisted=True,
        )
        session.add(user)
        await session.flush()
        await session.refresh(user)
        logger.info(f"Created user {user_id} on first login")
        return _user_to_dict(user)

    changed = False
    if email and user.email != email:
        user.email = email
        changed = True
    if name and user.name != name:
        user.name = name
        changed = True
    if image_url and user.image_url != image_url:
        user.image_url = image_url
        changed = True
    if changed:
        await session.flush()
        await session.refresh(user)
    return _user_to_dict(user)


async def list_users(session: AsyncSession, whitelisted_only: bool = False) -> List[Dict]:
    """List users ordered by name."""
    query = select(User).order_by(User.name, User.id)
    if whitelisted_only:
        query = query.where(User.is_whitelisted == True)  # noqa: E712
    result = await session.execute(query)
    return [_user_to_dict(u) for u in result.scalars().all()]


async def get_users_by_ids(session: AsyncSession, user_ids: List[str]) -> Dict[str, Dict]:
    """Map of user id to user dictionary for the given ids."""
    if not user_ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(set(user_ids))))
    return {u.id: _user_to_dict(u) for u in result.scalars().all()}


async def get_admin_users(session: AsyncSession) -> List[Dict]:
    """All users with the admin flag."""
    result = await session.execute(
        select(User).where(User.is_admin == True).order_by(User.id)  # noqa: E712
    )
    return [_user_to_dict(u) for u in result.scalars().all()]


async def get_active_players(session: AsyncSession) -> List[Dict]:
    """Whitelisted, non-admin users."""
    result = await session.execute(
        select(User)
        .where(User.is_whitelisted == True, User.is_admin == False)  # noqa: E712
        .order_by(User.name, User.id)
    )
    return [_user_to_dict(u) for u in result.scalars().all()]


async def _get_user_model(session: AsyncSession, user_id: str) -> User:
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


async def set_admin(session: AsyncSession, user_id: str, is_admin: bool) -> Dict:
    """Toggle the admin flag."""
    user = await _get_user_model(session, user_id)
    user.is_admin = bool(is_admin)
    user.updated_at = utcnow()
    await session.flush()
    await session.refresh(user)
    logger.info(f"User {user_id} admin flag set to {user.is_admin}")
    return _user_to_dict(user)


async def set_whitelisted(session: AsyncSession, user_id: str, is_whitelisted: bool) -> Dict:
    """Toggle the whitelist flag. Votes of non-whitelisted users are ignored."""
    user = await _get_user_model(session, user_id)
    user.is_whitelisted = bool(is_whitelisted)
    user.updated_at = utcnow()
    await session.flush()
    await session.refresh(user)
    logger.info(f"User {user_id} whitelist flag set to {user.is_whitelisted}")
    return _user_to_dict(user)


async def update_nickname(session: AsyncSession, user_id: str, nickname: Optional[str]) -> Dict:
    """
    Set or clear the user's nickname.

    Raises:
        ValueError: If the nickname is too long
    """
    cleaned = (nickname or "").strip()
    if len(cleaned) > NICKNAME_MAX_LENGTH:
        raise ValueError(f"Nickname must be at most {NICKNAME_MAX_LENGTH} characters")

    user = await _get_user_model(session, user_id)
    user.nickname = cleaned or None
    user.updated_at = utcnow()
    await session.flush()
    await session.refresh(user)
    return _user_to_dict(user)


async def delete_user(session: AsyncSession, user_id: str) -> bool:
    """
    Delete a user and their ledger rows.

    Game rosters keep historical ids.

    Returns:
        True if deleted, False if the user did not exist
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        return False

    await session.execute(delete(MonthlyAvailability).where(MonthlyAvailability.user_id == user_id))
    await session.execute(delete(ReminderStatus).where(ReminderStatus.user_id == user_id))
    await session.execute(delete(MvpVoteStatus).where(MvpVoteStatus.voter_id == user_id))
    await session.delete(user)
    await session.flush()
    logger.info(f"Deleted user {user_id}")
    return True
