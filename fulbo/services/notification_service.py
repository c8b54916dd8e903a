"""
Notification service for admin dashboard notifications.

Handles creation, retrieval, and status updates for admin notifications
(match_ready, voting_reminder).
"""

from typing import List, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from fulbo.database.models import AdminNotification, AdminNotificationType
from fulbo.utils.datetime_utils import utcnow
import logging

logger = logging.getLogger(__name__)

VALID_TYPES = {t.value for t in AdminNotificationType}


class NotificationNotFoundError(ValueError):
    """Raised when an admin notification id does not match any record."""


def _notification_to_dict(notification: AdminNotification) -> Dict:
    return {
        "id": notification.id,
        "type": notification.type,
        "game_id": notification.game_id,
        "month": notification.month,
        "year": notification.year,
        "message": notification.message,
        "is_read": notification.is_read,
        "action_required": notification.action_required,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
        "updated_at": notification.updated_at.isoformat() if notification.updated_at else None,
    }


async def create_admin_notification(
    session: AsyncSession,
    type: str,
    message: str,
    game_id: Optional[int] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    action_required: bool = True,
) -> Dict:
    """
    Create an admin notification.

    Args:
        session: Database session
        type: AdminNotificationType value
        message: Notification message text
        game_id: Optional associated game
        month: Optional month the notification refers to
        year: Optional year the notification refers to
        action_required: Whether an admin needs to act on it

    Returns:
        Dict containing the created notification data

    Raises:
        ValueError: If required fields are missing or invalid
    """
    if not type:
        raise ValueError("type is required")
    if type not in VALID_TYPES:
        raise ValueError(f"Invalid notification type '{type}'")
    if not message:
        raise ValueError("message is required")
    if month is not None and not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")

    notification = AdminNotification(
        type=type,
        game_id=game_id,
        month=month,
        year=year,
        message=message,
        is_read=False,
        action_required=action_required,
    )
    session.add(notification)
    await session.flush()
    await session.refresh(notification)

    logger.info(f"Created admin notification {notification.id} ({type})")
    return _notification_to_dict(notification)


async def list_admin_notifications(
    session: AsyncSession,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> Dict:
    """
    Get admin notifications, newest first.

    Returns:
        Dict with notifications, total_count and has_more
    """
    query = select(AdminNotification)
    count_query = select(func.count()).select_from(AdminNotification)
    if unread_only:
        query = query.where(AdminNotification.is_read == False)  # noqa: E712
        count_query = count_query.where(AdminNotification.is_read == False)  # noqa: E712

    total_count = (await session.execute(count_query)).scalar_one() or 0
    result = await session.execute(
        query.order_by(AdminNotification.created_at.desc(), AdminNotification.id.desc())
        .limit(limit)
        .offset(offset)
    )
    notifications = [_notification_to_dict(n) for n in result.scalars().all()]
    return {
        "notifications": notifications,
        "total_count": total_count,
        "has_more": offset + len(notifications) < total_count,
    }


async def get_unread_count(session: AsyncSession) -> int:
    """Number of unread admin notifications."""
    result = await session.execute(
        select(func.count()).select_from(AdminNotification).where(
            AdminNotification.is_read == False  # noqa: E712
        )
    )
    return result.scalar_one() or 0


async def get_notification(session: AsyncSession, notification_id: int) -> Dict:
    """
    Get a single admin notification.

    Raises:
        NotificationNotFoundError: If it does not exist
    """
    result = await session.execute(
        select(AdminNotification).where(AdminNotification.id == notification_id)
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotificationNotFoundError(f"Notification {notification_id} not found")
    return _notification_to_dict(notification)


async def mark_as_read(session: AsyncSession, notification_id: int) -> Dict:
    """
    Mark a single admin notification as read.

    Raises:
        NotificationNotFoundError: If it does not exist
    """
    result = await session.execute(
        select(AdminNotification).where(AdminNotification.id == notification_id)
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotificationNotFoundError(f"Notification {notification_id} not found")

    if not notification.is_read:
        notification.is_read = True
        notification.updated_at = utcnow()
        await session.flush()
        await session.refresh(notification)

    return _notification_to_dict(notification)


async def mark_game_notifications_read(session: AsyncSession, game_id: int) -> int:
    """
    Mark every unread notification of a game as read.

    Returns:
        Number of notifications updated
    """
    result = await session.execute(
        update(AdminNotification)
        .where(
            AdminNotification.game_id == game_id,
            AdminNotification.is_read == False,  # noqa: E712
        )
        .values(is_read=True, updated_at=utcnow())
    )
    await session.flush()
    return result.rowcount or 0


async def create_voting_reminder_notification(
    session: AsyncSession,
    month: int,
    year: int,
    pending_names: List[str],
) -> Optional[Dict]:
    """
    Summarize pending voters for a month as a voting_reminder notification.

    Returns:
        The created notification, or None when everybody already voted
    """
    if not pending_names:
        logger.info(f"No pending voters for {month}/{year}; no reminder notification created")
        return None

    message = (
        f"{len(pending_names)} jugador(es) sin votar para {month}/{year}: "
        + ", ".join(pending_names)
    )
    return await create_admin_notification(
        session,
        type=AdminNotificationType.VOTING_REMINDER.value,
        message=message,
        month=month,
        year=year,
        action_required=True,
    )
