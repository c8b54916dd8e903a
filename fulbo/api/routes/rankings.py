"""Ranking and player statistics route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from fulbo.database.db import get_db_session
from fulbo.services import ranking_service
from fulbo.api.auth_dependencies import require_user

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/rankings")
async def get_rankings(
    quarter: Optional[str] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Leaderboards for a quarter ("2025-Q1") or all time.

    Returns:
        top_winners, best_win_rate, detailed, mvp_awards, mvp_votes and
        hall_of_shame rows
    """
    try:
        return await ranking_service.compute_rankings(session, quarter)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error computing rankings: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error computing rankings: {str(e)}")


@router.get("/api/rankings/quarters")
async def list_quarters(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Quarters with completed games, newest first."""
    try:
        return {"quarters": await ranking_service.list_quarters(session)}
    except Exception as e:
        logger.error(f"Error listing quarters: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error listing quarters: {str(e)}")


@router.get("/api/rankings/players/{user_id}")
async def get_player_stats(
    user_id: str,
    quarter: Optional[str] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Statistics of one player."""
    try:
        return await ranking_service.get_player_stats(session, user_id, quarter)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error getting player stats: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting player stats: {str(e)}")
