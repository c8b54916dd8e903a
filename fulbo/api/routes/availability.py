"""Monthly availability (voting) route handlers."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fulbo.api.routes import limiter
from fulbo.database.db import get_db_session
from fulbo.services import availability_service, roster_service, settings_service
from fulbo.api.auth_dependencies import require_user, require_admin
from fulbo.models.schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    UnvoteRequest,
    VotingStatusResponse,
    MonthSummaryResponse,
    ActiveMonthResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def _resolve_month(session: AsyncSession, month: Optional[int], year: Optional[int]):
    if month is None or year is None:
        active = await settings_service.get_active_month(session)
        return month or active["month"], year or active["year"]
    return month, year


async def _release_removed_days(session: AsyncSession, user_id: str, month: int, year: int, days) -> None:
    for day in sorted(days):
        game = await roster_service.release_player(session, user_id, date(year, month, day))
        if game:
            logger.info(f"User {user_id} left game {game['id']} after withdrawing their vote")


@router.get("/api/settings/active-month", response_model=ActiveMonthResponse)
async def get_active_month(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get the globally active voting month."""
    try:
        return await settings_service.get_active_month(session)
    except Exception as e:
        logger.error(f"Error getting active month: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting active month: {str(e)}")


@router.get("/api/availability", response_model=AvailabilityResponse)
async def get_my_availability(
    month: Optional[int] = None,
    year: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get the caller's vote for a month (defaults to the active month)."""
    try:
        month, year = await _resolve_month(session, month, year)
        return await availability_service.get_availability_record(session, user["id"], month, year)
    except Exception as e:
        logger.error(f"Error getting availability: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting availability: {str(e)}")


@router.put("/api/availability")
@limiter.limit("30/minute")
async def set_my_availability(
    request: Request,
    payload: AvailabilityRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Record the caller's vote for a month.

    Days the caller no longer marks free release them from unconfirmed games;
    then Sundays with a full set of votes get their game created or resynced.
    """
    try:
        previous = set(
            await availability_service.get_availability(session, user["id"], payload.month, payload.year)
        )
        availability = await availability_service.set_availability(
            session,
            user["id"],
            payload.month,
            payload.year,
            payload.available_sundays,
            cannot_play_any_day=payload.cannot_play_any_day,
        )
        removed = previous - set(availability["available_sundays"])
        await _release_removed_days(session, user["id"], payload.month, payload.year, removed)
        sweep = await roster_service.check_and_create_games(session)
        return {
            "availability": availability,
            "games_created": [g["id"] for g in sweep["created"]],
            "games_updated": [g["id"] for g in sweep["updated"]],
        }
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error saving availability: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error saving availability: {str(e)}")


@router.post("/api/availability/unvote", response_model=AvailabilityResponse)
@limiter.limit("30/minute")
async def unvote(
    request: Request,
    payload: UnvoteRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Withdraw the caller's vote for some days of a month."""
    try:
        previous = set(
            await availability_service.get_availability(session, user["id"], payload.month, payload.year)
        )
        availability = await availability_service.unvote(
            session, user["id"], payload.month, payload.year, payload.days
        )
        removed = previous - set(availability["available_sundays"])
        await _release_removed_days(session, user["id"], payload.month, payload.year, removed)
        return availability
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error removing vote: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error removing vote: {str(e)}")


@router.get("/api/availability/status", response_model=VotingStatusResponse)
async def get_voting_status(
    month: Optional[int] = None,
    year: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Whether the caller voted for a month."""
    try:
        month, year = await _resolve_month(session, month, year)
        return await availability_service.get_voting_status(session, user["id"], month, year)
    except Exception as e:
        logger.error(f"Error getting voting status: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting voting status: {str(e)}")


@router.get("/api/availability/summary", response_model=MonthSummaryResponse)
async def get_month_summary(
    month: Optional[int] = None,
    year: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Votes per Sunday of a month."""
    try:
        month, year = await _resolve_month(session, month, year)
        return await availability_service.get_month_summary(session, month, year)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error getting month summary: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting month summary: {str(e)}")


@router.get("/api/availability/blocked-days")
async def get_blocked_days(
    month: Optional[int] = None,
    year: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Sundays already taken by a confirmed full game."""
    try:
        month, year = await _resolve_month(session, month, year)
        days = await availability_service.get_blocked_days(session, month, year)
        return {"month": month, "year": year, "blocked_days": days}
    except Exception as e:
        logger.error(f"Error getting blocked days: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting blocked days: {str(e)}")


@router.get("/api/availability/pending")
async def get_pending_voters(
    month: Optional[int] = None,
    year: Optional[int] = None,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Whitelisted users who have not voted for a month (admin only)."""
    try:
        month, year = await _resolve_month(session, month, year)
        pending = await availability_service.get_pending_voters(session, month, year)
        return {"month": month, "year": year, "users": pending}
    except Exception as e:
        logger.error(f"Error getting pending voters: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting pending voters: {str(e)}")
