"""
Result and MVP tally.

Ballots (MvpVote) never reference the voter; a separate MvpVoteStatus row per
(game, voter) blocks double voting.
"""

import logging
from collections import Counter
from typing import List, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from fulbo.database.models import Game, GameStatus, MvpVote, MvpVoteStatus
from fulbo.services import user_service
from fulbo.services.roster_service import get_game_model, RosterError
from fulbo.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class MvpVoteConflictError(ValueError):
    """Raised when a voter already cast a ballot for a game."""


class MvpPermissionError(ValueError):
    """Raised when the voter did not play the game."""


class MvpFinalizedError(ValueError):
    """Raised when the MVP of a game was already decided."""


def _validate_score(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{label} must be a number")
    if value < 0:
        raise ValueError(f"{label} cannot be negative")
    if value != int(value):
        raise ValueError(f"{label} must be a whole number")
    return int(value)


def is_finalized(game: Game) -> bool:
    return bool(game.result and game.result.get("mvp"))


async def record_result(
    session: AsyncSession,
    game_id: int,
    team1_score: int,
    team2_score: int,
    notes: Optional[str] = None,
) -> Dict:
    """
    Store the final score of a game. Does not change its status.

    A previously finalized MVP is kept.

    Raises:
        RosterError: If the game has no teams
        ValueError: If a score is negative or not a whole number
    """
    team1_score = _validate_score(team1_score, "team1_score")
    team2_score = _validate_score(team2_score, "team2_score")

    game = await get_game_model(session, game_id)
    if game.status == GameStatus.CANCELLED:
        raise ValueError("Cannot record a result for a cancelled game")
    teams = game.teams or {}
    if not teams.get("team1") or not teams.get("team2"):
        raise RosterError("Teams must be set before recording a result")

    result = {"team1_score": team1_score, "team2_score": team2_score, "notes": notes or None}
    if game.result and game.result.get("mvp"):
        result["mvp"] = game.result["mvp"]
    game.result = result
    game.updated_at = utcnow()
    await session.flush()
    await session.refresh(game)

    logger.info(f"Result recorded for game {game_id}: {team1_score}-{team2_score}")
    return {"game_id": game.id, "result": game.result}


async def clear_result(session: AsyncSession, game_id: int) -> Dict:
    """Remove the stored result (score and MVP) of a game."""
    game = await get_game_model(session, game_id)
    game.result = None
    game.updated_at = utcnow()
    await session.flush()
    logger.info(f"Result cleared for game {game_id}")
    return {"game_id": game.id, "result": None}


async def has_voted(session: AsyncSession, game_id: int, voter_id: str) -> bool:
    """Whether a voter already cast a ballot for a game."""
    result = await session.execute(
        select(MvpVoteStatus).where(
            MvpVoteStatus.game_id == game_id,
            MvpVoteStatus.voter_id == voter_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def cast_mvp_vote(session: AsyncSession, game_id: int, voter_id: str, voted_for_id: str) -> Dict:
    """
    Cast an anonymous MVP ballot.

    Raises:
        ValueError: If the game is not completed or the candidate did not play
        MvpPermissionError: If the voter did not play
        MvpVoteConflictError: If the voter already voted
    """
    game = await get_game_model(session, game_id)
    if game.status != GameStatus.COMPLETED:
        raise ValueError("MVP voting opens once the game is completed")

    participants = list(game.participants or [])
    if voter_id not in participants:
        raise MvpPermissionError("Only participants can vote for the MVP")
    if voted_for_id not in participants:
        raise ValueError("The MVP must be one of the participants")
    if await has_voted(session, game_id, voter_id):
        raise MvpVoteConflictError("You already voted for this game's MVP")

    session.add(MvpVoteStatus(game_id=game_id, voter_id=voter_id, has_voted=True, voted_at=utcnow()))
    try:
        await session.flush()
    except IntegrityError:
        # A concurrent request recorded this voter first
        await session.rollback()
        raise MvpVoteConflictError("You already voted for this game's MVP")
    session.add(MvpVote(game_id=game_id, voted_for_id=voted_for_id))
    await session.flush()

    logger.info(f"MVP ballot recorded for game {game_id}")
    return {"game_id": game_id, "success": True}


async def _tally(session: AsyncSession, game: Game) -> Counter:
    participants = set(game.participants or [])
    result = await session.execute(select(MvpVote.voted_for_id).where(MvpVote.game_id == game.id))
    return Counter(uid for uid in result.scalars().all() if uid in participants)


async def _voter_ids(session: AsyncSession, game_id: int) -> set:
    result = await session.execute(
        select(MvpVoteStatus.voter_id).where(MvpVoteStatus.game_id == game_id)
    )
    return set(result.scalars().all())


async def get_mvp_results(session: AsyncSession, game_id: int, include_non_voters: bool = False) -> Dict:
    """
    Tally the ballots of a game.

    Candidates are the participants, ranked by votes; ties are left as they are.
    Percentages are rounded to whole numbers.

    Args:
        session: Database session
        game_id: Game ID
        include_non_voters: Add the participants who have not voted (admin view)

    Returns:
        Dict with results, total_votes, total_participants, mvp, finalized
        and optionally non_voters
    """
    game = await get_game_model(session, game_id)
    counts = await _tally(session, game)
    total_votes = sum(counts.values())
    participants = list(game.participants or [])
    users = await user_service.get_users_by_ids(session, participants)

    candidates = [
        {
            "user_id": uid,
            "name": user_service.display_name(users[uid]) if uid in users else uid,
            "votes": counts.get(uid, 0),
            "percentage": round(counts.get(uid, 0) * 100 / total_votes) if total_votes else 0,
        }
        for uid in participants
    ]
    candidates.sort(key=lambda c: c["votes"], reverse=True)

    response = {
        "game_id": game.id,
        "results": candidates,
        "total_votes": total_votes,
        "total_participants": len(participants),
        "mvp": (game.result or {}).get("mvp"),
        "finalized": is_finalized(game),
    }
    if include_non_voters:
        voted = await _voter_ids(session, game.id)
        response["non_voters"] = [
            users[uid] if uid in users else {"id": uid}
            for uid in participants
            if uid not in voted
        ]
    return response


async def get_non_voters(session: AsyncSession, game_id: int) -> List[Dict]:
    """
    Participants who have not voted yet.

    Raises:
        MvpFinalizedError: If the MVP was already finalized
    """
    game = await get_game_model(session, game_id)
    if is_finalized(game):
        raise MvpFinalizedError("The MVP of this game was already finalized")

    voted = await _voter_ids(session, game.id)
    participants = list(game.participants or [])
    users = await user_service.get_users_by_ids(session, participants)
    return [users[uid] if uid in users else {"id": uid} for uid in participants if uid not in voted]


async def finalize_mvp(session: AsyncSession, game_id: int) -> Dict:
    """
    Decide the MVP from the current tally.

    A single top candidate is stored as an id; a tie stores the list of all
    tied candidates.

    Raises:
        ValueError: If the game is not completed, has no result or no ballots
    """
    game = await get_game_model(session, game_id)
    if game.status != GameStatus.COMPLETED:
        raise ValueError("Only completed games can have an MVP")
    if not game.result:
        raise ValueError("Record the result before finalizing the MVP")

    counts = await _tally(session, game)
    if not counts:
        raise ValueError("No MVP votes have been cast for this game")

    top = max(counts.values())
    winners = [uid for uid in game.participants or [] if counts.get(uid, 0) == top]
    mvp = winners[0] if len(winners) == 1 else winners

    game.result = {**game.result, "mvp": mvp}
    game.updated_at = utcnow()
    await session.flush()
    await session.refresh(game)

    logger.info(f"MVP finalized for game {game_id}: {mvp} with {top} vote(s)")
    return {"game_id": game.id, "mvp": mvp, "votes": top, "tie": len(winners) > 1}
