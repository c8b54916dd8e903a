"""Game, roster and team route handlers."""

import logging
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from fulbo.api.routes import service_error_to_http
from fulbo.database.db import get_db_session
from fulbo.services import roster_service
from fulbo.api.auth_dependencies import require_user, require_admin
from fulbo.models.schemas import (
    GameResponse,
    GameCreateRequest,
    GameUpdateRequest,
    ConfirmGameRequest,
    CompleteGameRequest,
    RosterActionRequest,
    TeamAssignmentRequest,
    ReplaceParticipantRequest,
    SelectedParticipantsRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/games", response_model=List[GameResponse])
async def list_games(
    status: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List games, optionally filtered by status and month."""
    try:
        return await roster_service.list_games(session, status=status, year=year, month=month)
    except ValueError as e:
        raise service_error_to_http(e)
    except Exception as e:
        logger.error(f"Error listing games: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error listing games: {str(e)}")


@router.get("/api/games/{game_id}", response_model=GameResponse)
async def get_game(
    game_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a game with its roster."""
    try:
        return await roster_service.get_game(session, game_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except Exception as e:
        logger.error(f"Error getting game: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting game: {str(e)}")


@router.post("/api/games", response_model=GameResponse)
async def create_game(
    payload: GameCreateRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a game by hand (admin only)."""
    try:
        return await roster_service.create_game(
            session, payload.date, participants=payload.participants, custom_time=payload.custom_time
        )
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating game: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error creating game: {str(e)}")


@router.post("/api/games/check")
async def check_and_create_games(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Run the game creation sweep over the upcoming months (admin only)."""
    try:
        return await roster_service.check_and_create_games(session)
    except ValueError as e:
        raise service_error_to_http(e)
    except Exception as e:
        logger.error(f"Error running game sweep: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error running game sweep: {str(e)}")


@router.patch("/api/games/{game_id}", response_model=GameResponse)
async def update_game(
    game_id: int,
    payload: GameUpdateRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Edit custom time, reservation info or status of a game (admin only)."""
    try:
        return await roster_service.update_game(
            session,
            game_id,
            status=payload.status,
            custom_time=payload.custom_time,
            reservation_info=payload.reservation_info.model_dump() if payload.reservation_info else None,
            clear_reservation=payload.clear_reservation,
            send_mvp_reminder=payload.send_mvp_reminder,
        )
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating game: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error updating game: {str(e)}")


@router.delete("/api/games/{game_id}")
async def delete_game(
    game_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a game and its ballots (admin only)."""
    try:
        deleted = await roster_service.delete_game(session, game_id)
        if not deleted:
            raise HTTPException(status_code=404, detail="Game not found")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting game: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error deleting game: {str(e)}")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@router.post("/api/games/{game_id}/confirm", response_model=GameResponse)
async def confirm_game(
    game_id: int,
    payload: ConfirmGameRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Confirm a game with its reservation and email the participants."""
    try:
        return await roster_service.confirm_game(session, game_id, payload.reservation_info.model_dump())
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error confirming game: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error confirming game: {str(e)}")


@router.post("/api/games/{game_id}/complete", response_model=GameResponse)
async def complete_game(
    game_id: int,
    payload: CompleteGameRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Mark a confirmed game as played."""
    try:
        return await roster_service.complete_game(
            session, game_id, send_mvp_reminder=payload.send_mvp_reminder
        )
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error completing game: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error completing game: {str(e)}")


@router.post("/api/games/{game_id}/cancel", response_model=GameResponse)
async def cancel_game(
    game_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Cancel a game that has not been played."""
    try:
        return await roster_service.cancel_game(session, game_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error cancelling game: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error cancelling game: {str(e)}")


@router.post("/api/games/{game_id}/reopen", response_model=GameResponse)
async def reopen_game(
    game_id: int,
    clear_reservation: bool = False,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Move a confirmed game back to scheduled."""
    try:
        return await roster_service.reopen_game(session, game_id, clear_reservation=clear_reservation)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error reopening game: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error reopening game: {str(e)}")


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------


@router.post("/api/games/{game_id}/promote", response_model=GameResponse)
async def promote_from_waitlist(
    game_id: int,
    payload: RosterActionRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Move a waitlisted player into the participants."""
    try:
        return await roster_service.promote_from_waitlist(session, game_id, payload.user_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error promoting player: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error promoting player: {str(e)}")


@router.post("/api/games/{game_id}/demote", response_model=GameResponse)
async def demote_to_waitlist(
    game_id: int,
    payload: RosterActionRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Move a participant to the head of the waitlist."""
    try:
        return await roster_service.demote_to_waitlist(session, game_id, payload.user_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error demoting player: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error demoting player: {str(e)}")


@router.post("/api/games/{game_id}/remove", response_model=GameResponse)
async def remove_from_match(
    game_id: int,
    payload: RosterActionRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Take a player off the roster entirely."""
    try:
        return await roster_service.remove_from_match(session, game_id, payload.user_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error removing player: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error removing player: {str(e)}")


@router.post("/api/games/{game_id}/waitlist", response_model=GameResponse)
async def add_to_waitlist(
    game_id: int,
    payload: RosterActionRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Append a player to the end of the waitlist."""
    try:
        return await roster_service.add_to_waitlist(session, game_id, payload.user_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error adding to waitlist: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error adding to waitlist: {str(e)}")


@router.post("/api/games/{game_id}/replace", response_model=GameResponse)
async def replace_participant(
    game_id: int,
    payload: ReplaceParticipantRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Swap a participant for another player or the head of the waitlist."""
    try:
        return await roster_service.replace_participant(
            session, game_id, payload.remove_user_id, payload.add_user_id
        )
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error replacing participant: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error replacing participant: {str(e)}")


@router.post("/api/games/{game_id}/sync", response_model=GameResponse)
async def sync_with_voters(
    game_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Rebuild the roster from the current votes for the game's date."""
    try:
        return await roster_service.sync_with_voters(session, game_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error syncing game with votes: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error syncing game with votes: {str(e)}")


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


@router.post("/api/games/{game_id}/teams/assign", response_model=GameResponse)
async def assign_to_team(
    game_id: int,
    payload: TeamAssignmentRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Put a player on team 1 or 2."""
    try:
        return await roster_service.assign_to_team(session, game_id, payload.user_id, payload.team_number)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error assigning team: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error assigning team: {str(e)}")


@router.post("/api/games/{game_id}/teams/remove", response_model=GameResponse)
async def remove_from_team(
    game_id: int,
    payload: RosterActionRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Take a player off their team."""
    try:
        return await roster_service.remove_from_team(session, game_id, payload.user_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error removing from team: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error removing from team: {str(e)}")


@router.post("/api/games/{game_id}/teams/regenerate", response_model=GameResponse)
async def regenerate_teams(
    game_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Shuffle the participants into two random teams of five."""
    try:
        return await roster_service.regenerate_teams(session, game_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error generating teams: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error generating teams: {str(e)}")


@router.post("/api/games/{game_id}/teams/revert", response_model=GameResponse)
async def revert_to_original_teams(
    game_id: int,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Restore the first generated teams."""
    try:
        return await roster_service.revert_to_original_teams(session, game_id)
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error reverting teams: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error reverting teams: {str(e)}")


# ---------------------------------------------------------------------------
# Emails
# ---------------------------------------------------------------------------


@router.post("/api/games/{game_id}/send-confirmation")
async def send_match_confirmation(
    game_id: int,
    payload: SelectedParticipantsRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Re-send the match confirmation email."""
    try:
        return await roster_service.send_match_confirmation(
            session, game_id, selected_participants=payload.selected_participants
        )
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error sending match confirmation: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error sending match confirmation: {str(e)}")


@router.post("/api/games/{game_id}/send-mvp-reminder")
async def send_mvp_reminder(
    game_id: int,
    payload: SelectedParticipantsRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Send the MVP and payment reminder email."""
    try:
        return await roster_service.send_mvp_reminder(
            session, game_id, selected_participants=payload.selected_participants
        )
    except ValueError as e:
        raise service_error_to_http(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error sending MVP reminder: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error sending MVP reminder: {str(e)}")
