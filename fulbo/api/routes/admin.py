"""Admin notification feed, notification sweeps and settings route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from fulbo.api.routes import service_error_to_http
from fulbo.database.db import get_db_session
from fulbo.services import (
    availability_service,
    notification_service,
    roster_service,
    settings_service,
    user_service,
)
from fulbo.api.auth_dependencies import require_admin
from fulbo.models.schemas import (
    ActiveMonthRequest,
    ActiveMonthResponse,
    AdminNotificationActionRequest,
    AdminNotificationListResponse,
    UnreadCountResponse,
    VotingReminderRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/admin/notifications", response_model=AdminNotificationListResponse)
async def list_admin_notifications(
    limit: int = 50,
    offset: int = 0,
    unread_only: bool = False,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Get admin notifications with pagination."""
    try:
        return await notification_service.list_admin_notifications(
            session, unread_only=unread_only, limit=limit, offset=offset
        )
    except Exception as e:
        logger.error(f"Error fetching admin notifications: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error fetching admin notifications: {str(e)}")


@router.get("/api/admin/notifications/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    admin: dict = Depends(require_admin), session: AsyncSession = Depends(get_db_session)
):
    """Get unread admin notification count."""
    try:
        count = await notification_service.get_unread_count(session)
        return {"count": count}
    except Exception as e:
        logger.error(f"Error fetching unread count: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error fetching unread count: {str(e)}")


async def _confirm_match(session: AsyncSession, payload: AdminNotificationActionRequest) -> dict:
    game_id = payload.game_id
    if payload.notification_id is not None:
        notification = await notification_service.get_notification(session, payload.notification_id)
        game_id = game_id or notification["game_id"]
    if game_id is None:
        raise ValueError("game_id is required to confirm a match")
    if payload.reservation_info is None:
        raise ValueError("reservation_info is required to confirm a match")

    game = await roster_service.confirm_game(session, game_id, payload.reservation_info.model_dump())
    if payload.notification_id is not None:
        await notification_service.mark_as_read(session, payload.notification_id)
    return {"action": "confirm_match", "game": game}


async def _create_voting_reminder(session: AsyncSession, payload: AdminNotificationActionRequest) -> dict:
    if payload.month is None or payload.year is None:
        raise ValueError("month and year are required to create a voting reminder")
    pending = await availability_service.get_pending_voters(session, payload.month, payload.year)
    notification = await notification_service.create_voting_reminder_notification(
        session, payload.month, payload.year, [user_service.display_name(u) for u in pending]
    )
    return {"action": "create_voting_reminder", "notification": notification}


@router.post("/api/admin/notifications/action")
async def run_notification_action(
    payload: AdminNotificationActionRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Act on the admin notification feed.

    Actions: mark_read, confirm_match (confirms the game with its reservation
    and marks the notification read), create_voting_reminder.
    """
    try:
        if payload.action == "mark_read":
            if payload.notification_id is None:
                raise ValueError("notification_id is required to mark a notification read")
            notification = await notification_service.mark_as_read(session, payload.notification_id)
            return {"action": "mark_read", "notification": notification}
        if payload.action == "confirm_match":
            return await _confirm_match(session, payload)
        return await _create_voting_reminder(session, payload)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error running notification action {payload.action}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error running notification action: {str(e)}")


@router.post("/api/admin/voting-reminders")
async def send_voting_reminders(
    payload: VotingReminderRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Email every whitelisted user who has not voted (defaults to the active month)."""
    try:
        month, year = payload.month, payload.year
        if month is None or year is None:
            active = await settings_service.get_active_month(session)
            month, year = active["month"], active["year"]
        result = await availability_service.send_voting_reminders(session, month, year)
        return {
            "month": month,
            "year": year,
            "reminded": len(result["pending"]),
            "email_sent": result["email_sent"],
            "notification": result["notification"],
        }
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error sending voting reminders: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error sending voting reminders: {str(e)}")


@router.post("/api/admin/check-full-games")
async def check_full_games(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Notify admins about scheduled games with a full roster."""
    try:
        notified = await roster_service.check_full_games_and_notify_admins(session)
        return {"notified": notified}
    except Exception as e:
        logger.error(f"Error checking full games: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error checking full games: {str(e)}")


@router.put("/api/settings/active-month", response_model=ActiveMonthResponse)
async def set_active_month(
    payload: ActiveMonthRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Set the globally active voting month (admin only)."""
    try:
        return await settings_service.set_active_month(session, payload.month, payload.year)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error setting active month: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error setting active month: {str(e)}")
