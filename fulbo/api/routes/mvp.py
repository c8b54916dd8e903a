"""Game result and MVP voting route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fulbo.api.routes import limiter, service_error_to_http
from fulbo.database.db import get_db_session
from fulbo.services import mvp_service
from fulbo.api.auth_dependencies import require_user, require_admin
from fulbo.models.schemas import ResultRequest, MvpVoteRequest, MvpResultsResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.put("/api/games/{game_id}/result")
async def record_result(
    game_id: int,
    payload: ResultRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Store the final score of a game (admin only)."""
    try:
        return await mvp_service.record_result(
            session, game_id, payload.team1_score, payload.team2_score, notes=payload.notes
        )
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error recording result: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error recording result: {str(e)}")


@router.delete("/api/games/{game_id}/result")
async def clear_result(
    game_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete the stored result of a game (admin only)."""
    try:
        return await mvp_service.clear_result(session, game_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error clearing result: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error clearing result: {str(e)}")


@router.post("/api/games/{game_id}/mvp/vote")
@limiter.limit("10/minute")
async def cast_mvp_vote(
    request: Request,
    game_id: int,
    payload: MvpVoteRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Cast the caller's anonymous MVP ballot."""
    try:
        return await mvp_service.cast_mvp_vote(session, game_id, user["id"], payload.voted_for_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error casting MVP vote: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error casting MVP vote: {str(e)}")


@router.get("/api/games/{game_id}/mvp/has-voted")
async def has_voted(
    game_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Whether the caller already voted for this game's MVP."""
    try:
        voted = await mvp_service.has_voted(session, game_id, user["id"])
        return {"game_id": game_id, "has_voted": voted}
    except Exception as e:
        logger.error(f"Error checking MVP vote: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error checking MVP vote: {str(e)}")


@router.get("/api/games/{game_id}/mvp", response_model=MvpResultsResponse)
async def get_mvp_results(
    game_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    MVP tally of a game.

    Admins also get the participants who have not voted.
    """
    try:
        return await mvp_service.get_mvp_results(
            session, game_id, include_non_voters=bool(user.get("is_admin"))
        )
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting MVP results: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting MVP results: {str(e)}")


@router.get("/api/games/{game_id}/mvp/non-voters")
async def get_non_voters(
    game_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Participants who have not voted yet (admin only)."""
    try:
        users = await mvp_service.get_non_voters(session, game_id)
        return {"game_id": game_id, "non_voters": users}
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting non voters: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting non voters: {str(e)}")


@router.post("/api/games/{game_id}/mvp/finalize")
async def finalize_mvp(
    game_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Decide the MVP from the current tally (admin only)."""
    try:
        return await mvp_service.finalize_mvp(session, game_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error finalizing MVP: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error finalizing MVP: {str(e)}")
