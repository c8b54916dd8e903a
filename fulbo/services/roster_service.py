"""
Game roster manager.

Owns the participants / waitlist / teams triple of each game and the game
lifecycle (scheduled -> confirmed -> completed, or cancelled). Every mutation
is a read-modify-write of the game row; JSON lists are always reassigned,
never mutated in place.
"""

import random
import logging
from datetime import date, datetime, timedelta
from typing import List, Dict, Optional, Tuple, Iterable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from fulbo.database.models import (
    AdminNotification,
    AdminNotificationType,
    Game,
    GameStatus,
    MvpVote,
    MvpVoteStatus,
)
from fulbo.services import (
    availability_service,
    calendar_service,
    email_service,
    notification_service,
    user_service,
)
from fulbo.utils.constants import (
    ADMIN_NOTIFICATION_COOLDOWN_HOURS,
    GAME_SWEEP_MONTHS_AHEAD,
    ROSTER_SIZE,
    TEAM_SIZE,
)
from fulbo.utils.datetime_utils import (
    utcnow,
    ensure_utc,
    add_months,
    get_sundays_in_month,
    parse_time,
)

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {GameStatus.COMPLETED, GameStatus.CANCELLED}
TEAM_KEYS = {1: "team1", 2: "team2"}


class GameNotFoundError(ValueError):
    """Raised when a game id does not match any record."""


class GameConflictError(ValueError):
    """Raised when a game already exists for a date."""


class RosterError(ValueError):
    """Raised when a roster change is not allowed."""


class InvalidTransitionError(ValueError):
    """Raised when a game cannot move to the requested status."""


def _game_to_dict(game: Game) -> Dict:
    status = game.status.value if isinstance(game.status, GameStatus) else game.status
    timeout = ensure_utc(game.admin_notification_timeout)
    return {
        "id": game.id,
        "date": game.date.isoformat() if game.date else None,
        "custom_time": game.custom_time,
        "status": status,
        "participants": list(game.participants or []),
        "waitlist": list(game.waitlist or []),
        "teams": game.teams,
        "original_teams": game.original_teams,
        "reservation_info": game.reservation_info,
        "result": game.result,
        "admin_notification_sent": game.admin_notification_sent,
        "admin_notification_timeout": timeout.isoformat() if timeout else None,
        "calendar_event_id": game.calendar_event_id,
        "created_at": game.created_at.isoformat() if game.created_at else None,
        "updated_at": game.updated_at.isoformat() if game.updated_at else None,
    }


# ---------------------------------------------------------------------------
# Pure roster helpers
# ---------------------------------------------------------------------------


def split_roster(voters: Iterable[str]) -> Tuple[List[str], List[str]]:
    """First ROSTER_SIZE ids play, the rest wait in the same order."""
    ordered = list(dict.fromkeys(voters))
    return ordered[:ROSTER_SIZE], ordered[ROSTER_SIZE:]


def prune_teams(teams: Optional[Dict], valid_ids: Iterable[str]) -> Optional[Dict]:
    """Drop team members that are no longer on the roster."""
    if not teams:
        return teams
    valid = set(valid_ids)
    return {
        "team1": [uid for uid in teams.get("team1", []) if uid in valid],
        "team2": [uid for uid in teams.get("team2", []) if uid in valid],
    }


def generate_teams(players: List[str], rng: Optional[random.Random] = None) -> Dict:
    """
    Split exactly ROSTER_SIZE players into two random teams.

    Uniform shuffle, no skill weighting.

    Raises:
        RosterError: If the number of players is not ROSTER_SIZE
    """
    if len(players) != ROSTER_SIZE:
        raise RosterError(f"Exactly {ROSTER_SIZE} players are required to form teams")
    shuffled = list(players)
    (rng or random).shuffle(shuffled)
    return {"team1": shuffled[:TEAM_SIZE], "team2": shuffled[TEAM_SIZE:]}


def check_roster(participants: List[str], waitlist: List[str], teams: Optional[Dict]) -> None:
    """
    Validate a roster before it is stored.

    Raises:
        RosterError: If any roster rule is broken
    """
    if len(participants) > ROSTER_SIZE:
        raise RosterError(f"A game cannot have more than {ROSTER_SIZE} participants")
    if len(set(participants)) != len(participants) or len(set(waitlist)) != len(waitlist):
        raise RosterError("Duplicate players in roster")
    if set(participants) & set(waitlist):
        raise RosterError("A player cannot be both a participant and on the waitlist")
    if teams:
        team1, team2 = set(teams.get("team1", [])), set(teams.get("team2", []))
        if team1 & team2:
            raise RosterError("A player cannot be on both teams")
        if not (team1 | team2) <= set(participants) | set(waitlist):
            raise RosterError("Team members must be on the roster")


# ---------------------------------------------------------------------------
# Loading and saving
# ---------------------------------------------------------------------------


async def get_game_model(session: AsyncSession, game_id: int) -> Game:
    """
    Load a game row.

    Raises:
        GameNotFoundError: If it does not exist
    """
    result = await session.execute(select(Game).where(Game.id == game_id))
    game = result.scalar_one_or_none()
    if game is None:
        raise GameNotFoundError(f"Game {game_id} not found")
    return game


async def get_game(session: AsyncSession, game_id: int) -> Dict:
    """Get a game by ID."""
    return _game_to_dict(await get_game_model(session, game_id))


async def _get_game_by_date_model(session: AsyncSession, game_date: date) -> Optional[Game]:
    result = await session.execute(select(Game).where(Game.date == game_date))
    return result.scalar_one_or_none()


async def get_game_by_date(session: AsyncSession, game_date: date) -> Optional[Dict]:
    """Get the game scheduled on a date, if any."""
    game = await _get_game_by_date_model(session, game_date)
    return _game_to_dict(game) if game else None


async def list_games(
    session: AsyncSession,
    status: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
) -> List[Dict]:
    """List games ordered by date, optionally filtered by status or month."""
    query = select(Game).order_by(Game.date)
    if status:
        query = query.where(Game.status == GameStatus(status))
    if year is not None and month is not None:
        next_year, next_month = add_months(year, month, 1)
        query = query.where(
            Game.date >= date(year, month, 1), Game.date < date(next_year, next_month, 1)
        )
    result = await session.execute(query)
    return [_game_to_dict(g) for g in result.scalars().all()]


async def _save_roster(
    session: AsyncSession,
    game: Game,
    participants: List[str],
    waitlist: List[str],
    teams: Optional[Dict],
) -> Dict:
    check_roster(participants, waitlist, teams)
    game.participants = list(participants)
    game.waitlist = list(waitlist)
    game.teams = dict(teams) if teams else teams
    game.updated_at = utcnow()
    await session.flush()
    await session.refresh(game)
    return _game_to_dict(game)


def _ensure_editable(game: Game) -> None:
    if game.status in TERMINAL_STATUSES:
        raise RosterError(f"Cannot change the roster of a {game.status.value} game")


async def _ensure_user_exists(session: AsyncSession, user_id: str) -> Dict:
    user = await user_service.get_user_by_id(session, user_id)
    if user is None:
        raise user_service.UserNotFoundError(f"User {user_id} not found")
    return user


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


async def create_game(
    session: AsyncSession,
    game_date: date,
    participants: Optional[List[str]] = None,
    custom_time: Optional[str] = None,
    admin_notification_sent: bool = False,
) -> Dict:
    """
    Create a scheduled game for a Sunday.

    Players beyond ROSTER_SIZE go to the waitlist in the given order.

    Raises:
        ValueError: If the date is not a Sunday or the time is malformed
        GameConflictError: If a game already exists on that date
    """
    if game_date.weekday() != 6:
        raise ValueError(f"{game_date.isoformat()} is not a Sunday")
    if custom_time:
        parse_time(custom_time)
    if await _get_game_by_date_model(session, game_date) is not None:
        raise GameConflictError(f"A game already exists for {game_date.isoformat()}")

    roster, waitlist = split_roster(participants or [])
    game = Game(
        date=game_date,
        custom_time=custom_time,
        status=GameStatus.SCHEDULED,
        participants=roster,
        waitlist=waitlist,
        admin_notification_sent=admin_notification_sent,
    )
    session.add(game)
    await session.flush()
    await session.refresh(game)

    logger.info(
        f"Created game {game.id} for {game_date.isoformat()} with "
        f"{len(roster)} participants and {len(waitlist)} on the waitlist"
    )
    return _game_to_dict(game)


async def delete_game(session: AsyncSession, game_id: int) -> bool:
    """
    Delete a game with its ballots and notifications.

    Returns:
        True if deleted, False if it did not exist
    """
    result = await session.execute(select(Game).where(Game.id == game_id))
    game = result.scalar_one_or_none()
    if game is None:
        return False

    await session.execute(delete(MvpVote).where(MvpVote.game_id == game_id))
    await session.execute(delete(MvpVoteStatus).where(MvpVoteStatus.game_id == game_id))
    await session.execute(delete(AdminNotification).where(AdminNotification.game_id == game_id))
    await session.delete(game)
    await session.flush()
    logger.info(f"Deleted game {game_id}")
    return True


async def check_and_create_games(session: AsyncSession, today: Optional[date] = None) -> Dict:
    """
    Create or resync games for every Sunday with a full set of votes.

    Scans the current month and the next GAME_SWEEP_MONTHS_AHEAD months. A
    Sunday with at least ROSTER_SIZE whitelisted votes gets a scheduled game;
    an existing scheduled game is resynced only when someone voted for the
    day who is on neither its participants nor its waitlist. Games
    created for dates already past are marked as notified so admins are not
    emailed about them. Finishes with the match_ready sweep.

    Returns:
        Dict with created and updated game lists and notified game ids
    """
    today = today or utcnow().date()
    created, updated = [], []

    for offset in range(GAME_SWEEP_MONTHS_AHEAD + 1):
        year, month = add_months(today.year, today.month, offset)
        votes = await availability_service.get_votes_by_day(session, month, year)
        for day in get_sundays_in_month(year, month):
            voters = votes.get(day, [])
            if len(voters) < ROSTER_SIZE:
                continue
            game_date = date(year, month, day)
            existing = await _get_game_by_date_model(session, game_date)
            if existing is None:
                created.append(
                    await create_game(
                        session,
                        game_date,
                        participants=voters,
                        admin_notification_sent=game_date < today,
                    )
                )
            elif existing.status == GameStatus.SCHEDULED:
                # Only new voters trigger a resync; admin reordering survives.
                rostered = set(existing.participants or []) | set(existing.waitlist or [])
                if set(voters) - rostered:
                    updated.append(await sync_with_voters(session, existing.id))

    notified = await check_full_games_and_notify_admins(session)
    logger.info(
        f"Game sweep from {today.isoformat()}: {len(created)} created, "
        f"{len(updated)} resynced, {len(notified)} admin notification(s)"
    )
    return {"created": created, "updated": updated, "notified": notified}


# ---------------------------------------------------------------------------
# Roster mutations
# ---------------------------------------------------------------------------


async def promote_from_waitlist(session: AsyncSession, game_id: int, user_id: str) -> Dict:
    """Move a waitlisted player into the participants."""
    game = await get_game_model(session, game_id)
    _ensure_editable(game)
    participants, waitlist = list(game.participants or []), list(game.waitlist or [])
    if user_id not in waitlist:
        raise RosterError(f"User {user_id} is not on the waitlist")
    if len(participants) >= ROSTER_SIZE:
        raise RosterError(f"The game already has {ROSTER_SIZE} participants")

    waitlist.remove(user_id)
    participants.append(user_id)
    logger.info(f"Promoted {user_id} from waitlist in game {game_id}")
    return await _save_roster(session, game, participants, waitlist, game.teams)


async def demote_to_waitlist(session: AsyncSession, game_id: int, user_id: str) -> Dict:
    """Move a participant to the head of the waitlist. Team assignments are kept."""
    game = await get_game_model(session, game_id)
    _ensure_editable(game)
    participants, waitlist = list(game.participants or []), list(game.waitlist or [])
    if user_id not in participants:
        raise RosterError(f"User {user_id} is not a participant")

    participants.remove(user_id)
    waitlist.insert(0, user_id)
    logger.info(f"Demoted {user_id} to waitlist in game {game_id}")
    return await _save_roster(session, game, participants, waitlist, game.teams)


async def remove_from_match(session: AsyncSession, game_id: int, user_id: str) -> Dict:
    """Remove a player from participants, waitlist and both teams."""
    game = await get_game_model(session, game_id)
    _ensure_editable(game)
    participants, waitlist = list(game.participants or []), list(game.waitlist or [])
    if user_id not in participants and user_id not in waitlist:
        raise RosterError(f"User {user_id} is not in this game")

    participants = [uid for uid in participants if uid != user_id]
    waitlist = [uid for uid in waitlist if uid != user_id]
    teams = prune_teams(game.teams, participants + waitlist)
    logger.info(f"Removed {user_id} from game {game_id}")
    return await _save_roster(session, game, participants, waitlist, teams)


async def add_to_waitlist(session: AsyncSession, game_id: int, user_id: str) -> Dict:
    """Append a player to the waitlist."""
    game = await get_game_model(session, game_id)
    _ensure_editable(game)
    participants, waitlist = list(game.participants or []), list(game.waitlist or [])
    if user_id in participants:
        raise RosterError(f"User {user_id} is already a participant")
    if user_id in waitlist:
        raise RosterError(f"User {user_id} is already on the waitlist")
    await _ensure_user_exists(session, user_id)

    waitlist.append(user_id)
    logger.info(f"Added {user_id} to waitlist of game {game_id}")
    return await _save_roster(session, game, participants, waitlist, game.teams)


async def replace_participant(
    session: AsyncSession,
    game_id: int,
    remove_user_id: str,
    add_user_id: Optional[str] = None,
) -> Dict:
    """
    Take a participant out and fill the slot.

    The slot goes to add_user_id when given (taken off the waitlist if there),
    otherwise to the head of the waitlist. The removed player leaves the game.
    """
    game = await get_game_model(session, game_id)
    _ensure_editable(game)
    participants, waitlist = list(game.participants or []), list(game.waitlist or [])
    if remove_user_id not in participants:
        raise RosterError(f"User {remove_user_id} is not a participant")

    participants.remove(remove_user_id)
    replacement = None
    if add_user_id:
        if add_user_id in participants:
            raise RosterError(f"User {add_user_id} is already a participant")
        await _ensure_user_exists(session, add_user_id)
        waitlist = [uid for uid in waitlist if uid != add_user_id]
        replacement = add_user_id
    elif waitlist:
        replacement = waitlist.pop(0)
    if replacement:
        participants.append(replacement)

    teams = prune_teams(game.teams, participants + waitlist)
    logger.info(f"Replaced {remove_user_id} with {replacement} in game {game_id}")
    return await _save_roster(session, game, participants, waitlist, teams)


async def release_player(session: AsyncSession, user_id: str, game_date: date) -> Optional[Dict]:
    """
    Take a player who withdrew their vote out of an unconfirmed game.

    The head of the waitlist fills a freed participant slot.

    Returns:
        Updated game, or None when no scheduled game on that date includes the player
    """
    game = await _get_game_by_date_model(session, game_date)
    if game is None or game.status != GameStatus.SCHEDULED:
        return None
    participants, waitlist = list(game.participants or []), list(game.waitlist or [])
    if user_id in participants:
        participants.remove(user_id)
        if waitlist:
            promoted = waitlist.pop(0)
            participants.append(promoted)
            logger.info(f"Promoted {promoted} after {user_id} left game {game.id}")
    elif user_id in waitlist:
        waitlist.remove(user_id)
    else:
        return None

    teams = prune_teams(game.teams, participants + waitlist)
    return await _save_roster(session, game, participants, waitlist, teams)


async def assign_to_team(session: AsyncSession, game_id: int, user_id: str, team_number: int) -> Dict:
    """Put a rostered player on team 1 or 2, leaving any team they were on."""
    if team_number not in TEAM_KEYS:
        raise ValueError("team_number must be 1 or 2")
    game = await get_game_model(session, game_id)
    _ensure_editable(game)
    participants, waitlist = list(game.participants or []), list(game.waitlist or [])
    if user_id not in participants and user_id not in waitlist:
        raise RosterError(f"User {user_id} is not in this game")

    current = game.teams or {"team1": [], "team2": []}
    teams = {
        "team1": [uid for uid in current.get("team1", []) if uid != user_id],
        "team2": [uid for uid in current.get("team2", []) if uid != user_id],
    }
    key = TEAM_KEYS[team_number]
    teams[key] = teams[key] + [user_id]
    logger.info(f"Assigned {user_id} to {key} in game {game_id}")
    return await _save_roster(session, game, participants, waitlist, teams)


async def remove_from_team(session: AsyncSession, game_id: int, user_id: str) -> Dict:
    """Take a player off their team. They stay in the game."""
    game = await get_game_model(session, game_id)
    _ensure_editable(game)
    current = game.teams or {"team1": [], "team2": []}
    if user_id not in current.get("team1", []) and user_id not in current.get("team2", []):
        raise RosterError(f"User {user_id} is not on a team")

    teams = {
        "team1": [uid for uid in current.get("team1", []) if uid != user_id],
        "team2": [uid for uid in current.get("team2", []) if uid != user_id],
    }
    return await _save_roster(session, game, list(game.participants or []), list(game.waitlist or []), teams)


async def regenerate_teams(
    session: AsyncSession, game_id: int, rng: Optional[random.Random] = None
) -> Dict:
    """
    Randomly split the participants into two teams.

    The first split is also kept as original_teams and never overwritten.
    """
    game = await get_game_model(session, game_id)
    if game.status not in (GameStatus.SCHEDULED, GameStatus.CONFIRMED):
        raise RosterError(f"Cannot generate teams for a {game.status.value} game")

    teams = generate_teams(list(game.participants or []), rng)
    if game.original_teams is None:
        game.original_teams = {"team1": list(teams["team1"]), "team2": list(teams["team2"])}
    logger.info(f"Generated teams for game {game_id}")
    return await _save_roster(session, game, list(game.participants or []), list(game.waitlist or []), teams)


async def revert_to_original_teams(session: AsyncSession, game_id: int) -> Dict:
    """Restore the first generated split, minus players who left. No-op without a snapshot."""
    game = await get_game_model(session, game_id)
    _ensure_editable(game)
    if not game.original_teams:
        return _game_to_dict(game)

    participants, waitlist = list(game.participants or []), list(game.waitlist or [])
    # Players who left the roster since the snapshot are left out
    original = prune_teams(
        {
            "team1": list(game.original_teams.get("team1", [])),
            "team2": list(game.original_teams.get("team2", [])),
        },
        participants + waitlist,
    )
    logger.info(f"Reverted teams of game {game_id} to the original split")
    return await _save_roster(session, game, participants, waitlist, original)


async def sync_with_voters(session: AsyncSession, game_id: int) -> Dict:
    """
    Rebuild participants and waitlist from the current votes for the game's date.

    Manual roster edits are discarded. Team members no longer on the roster
    are pruned; the rest of each team stays.
    """
    game = await get_game_model(session, game_id)
    _ensure_editable(game)
    voters = await availability_service.get_voters_for_date(session, game.date)
    participants, waitlist = split_roster(voters)
    teams = prune_teams(game.teams, participants + waitlist)
    logger.info(
        f"Synced game {game_id} with votes: {len(participants)} participants, "
        f"{len(waitlist)} waitlisted"
    )
    return await _save_roster(session, game, participants, waitlist, teams)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def _clean_reservation(reservation_info: Optional[Dict]) -> Dict:
    cleaned = {k: v for k, v in (reservation_info or {}).items() if v is not None}
    if cleaned.get("time"):
        parse_time(cleaned["time"])
    return cleaned


async def confirm_game(
    session: AsyncSession,
    game_id: int,
    reservation_info: Dict,
    notify: bool = True,
) -> Dict:
    """
    Confirm a scheduled game with reservation details, or update the details
    of an already confirmed one.

    On the scheduled -> confirmed transition a calendar event is built, the
    game's admin notifications are marked read and participants are emailed.
    A confirmed game stays confirmed even when the location is cleared.

    Raises:
        InvalidTransitionError: If the game is completed or cancelled
        ValueError: If a scheduled game is confirmed without a location
    """
    game = await get_game_model(session, game_id)
    if game.status in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Cannot confirm a {game.status.value} game")

    info = _clean_reservation(reservation_info)
    transition = game.status == GameStatus.SCHEDULED
    if transition and not (info.get("location") or "").strip():
        raise ValueError("location is required to confirm a game")

    game.reservation_info = info
    if info.get("time"):
        game.custom_time = info["time"]
    game.updated_at = utcnow()

    event = None
    if transition:
        game.status = GameStatus.CONFIRMED
        users = await user_service.get_users_by_ids(session, game.participants or [])
        event = calendar_service.build_event(
            game.id,
            game.date,
            [users[uid] for uid in game.participants or [] if uid in users],
            custom_time=game.custom_time,
            location=info.get("location"),
            maps_link=info.get("maps_link"),
        )
        game.calendar_event_id = event["id"]
        await notification_service.mark_game_notifications_read(session, game.id)

    await session.flush()
    await session.refresh(game)
    logger.info(f"Game {game_id} confirmed at {info.get('location')}")

    response = _game_to_dict(game)
    response["email_sent"] = None
    if transition and notify:
        response["email_sent"] = await _send_confirmation(session, game, event["ics"])
    return response


async def complete_game(session: AsyncSession, game_id: int, send_mvp_reminder: bool = False) -> Dict:
    """
    Mark a confirmed game as played.

    Raises:
        InvalidTransitionError: If the game is not confirmed
    """
    game = await get_game_model(session, game_id)
    if game.status != GameStatus.CONFIRMED:
        raise InvalidTransitionError(
            f"Only confirmed games can be completed (game is {game.status.value})"
        )
    game.status = GameStatus.COMPLETED
    game.updated_at = utcnow()
    await session.flush()
    await session.refresh(game)
    logger.info(f"Game {game_id} completed")

    response = _game_to_dict(game)
    response["email_sent"] = None
    if send_mvp_reminder:
        response["email_sent"] = await _send_mvp_reminder(session, game)
    return response


async def cancel_game(session: AsyncSession, game_id: int) -> Dict:
    """
    Cancel a game that has not been played.

    Raises:
        InvalidTransitionError: If the game is already completed or cancelled
    """
    game = await get_game_model(session, game_id)
    if game.status in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Cannot cancel a {game.status.value} game")
    game.status = GameStatus.CANCELLED
    game.updated_at = utcnow()
    await session.flush()
    await session.refresh(game)
    logger.info(f"Game {game_id} cancelled")
    return _game_to_dict(game)


async def reopen_game(session: AsyncSession, game_id: int, clear_reservation: bool = False) -> Dict:
    """
    Move a confirmed game back to scheduled.

    Raises:
        InvalidTransitionError: If the game is not confirmed
    """
    game = await get_game_model(session, game_id)
    if game.status != GameStatus.CONFIRMED:
        raise InvalidTransitionError(
            f"Only confirmed games can go back to scheduled (game is {game.status.value})"
        )
    game.status = GameStatus.SCHEDULED
    if clear_reservation:
        game.reservation_info = None
        game.calendar_event_id = None
    game.updated_at = utcnow()
    await session.flush()
    await session.refresh(game)
    logger.info(f"Game {game_id} back to scheduled (reservation cleared: {clear_reservation})")
    return _game_to_dict(game)


async def update_game(
    session: AsyncSession,
    game_id: int,
    status: Optional[str] = None,
    custom_time: Optional[str] = None,
    reservation_info: Optional[Dict] = None,
    clear_reservation: bool = False,
    send_mvp_reminder: bool = False,
) -> Dict:
    """
    Admin edit of a game: start time plus an optional status change.

    Status changes go through the lifecycle operations above.
    """
    game = await get_game_model(session, game_id)
    if custom_time is not None:
        if custom_time:
            parse_time(custom_time)
        game.custom_time = custom_time or None
        game.updated_at = utcnow()
        await session.flush()

    current = game.status
    target = GameStatus(status) if status else current

    if target == GameStatus.CONFIRMED:
        info = reservation_info if reservation_info is not None else (game.reservation_info or {})
        return await confirm_game(session, game_id, info)
    if target == current:
        if reservation_info is not None:
            if current in TERMINAL_STATUSES:
                raise InvalidTransitionError(f"Cannot edit the reservation of a {current.value} game")
            game.reservation_info = _clean_reservation(reservation_info)
            game.updated_at = utcnow()
        await session.flush()
        await session.refresh(game)
        return _game_to_dict(game)
    if target == GameStatus.SCHEDULED:
        return await reopen_game(session, game_id, clear_reservation=clear_reservation)
    if target == GameStatus.COMPLETED:
        return await complete_game(session, game_id, send_mvp_reminder=send_mvp_reminder)
    return await cancel_game(session, game_id)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


async def _recipients(session: AsyncSession, game: Game, selected: Optional[List[str]] = None) -> List[str]:
    participant_ids = list(game.participants or [])
    if selected is not None:
        wanted = set(selected)
        participant_ids = [uid for uid in participant_ids if uid in wanted]
    users = await user_service.get_users_by_ids(session, participant_ids)
    return [users[uid]["email"] for uid in participant_ids if uid in users]


async def _send_confirmation(
    session: AsyncSession, game: Game, calendar_ics: Optional[str], selected: Optional[List[str]] = None
) -> bool:
    recipients = await _recipients(session, game, selected)
    return await email_service.send_match_confirmation(
        recipients,
        game.date,
        reservation_info=game.reservation_info,
        custom_time=game.custom_time,
        calendar_ics=calendar_ics,
        session=session,
    )


async def _send_mvp_reminder(session: AsyncSession, game: Game, selected: Optional[List[str]] = None) -> bool:
    recipients = await _recipients(session, game, selected)
    info = game.reservation_info or {}
    return await email_service.send_mvp_reminder(
        recipients,
        game.id,
        game.date,
        payment_alias=info.get("payment_alias"),
        cost=info.get("cost"),
        session=session,
    )


async def send_match_confirmation(
    session: AsyncSession, game_id: int, selected_participants: Optional[List[str]] = None
) -> Dict:
    """Re-send the match-confirmed email, optionally to some participants only."""
    game = await get_game_model(session, game_id)
    if game.status != GameStatus.CONFIRMED:
        raise InvalidTransitionError("Confirmation emails can only be sent for confirmed games")
    users = await user_service.get_users_by_ids(session, game.participants or [])
    event = calendar_service.build_event(
        game.id,
        game.date,
        [users[uid] for uid in game.participants or [] if uid in users],
        custom_time=game.custom_time,
        location=(game.reservation_info or {}).get("location"),
        maps_link=(game.reservation_info or {}).get("maps_link"),
    )
    recipients = await _recipients(session, game, selected_participants)
    sent = await _send_confirmation(session, game, event["ics"], selected_participants)
    return {"game_id": game.id, "recipients": len(recipients), "email_sent": sent}


async def send_mvp_reminder(
    session: AsyncSession, game_id: int, selected_participants: Optional[List[str]] = None
) -> Dict:
    """Send the MVP and payment reminder, optionally to some participants only."""
    game = await get_game_model(session, game_id)
    if game.status != GameStatus.COMPLETED:
        raise InvalidTransitionError("MVP reminders can only be sent for completed games")
    recipients = await _recipients(session, game, selected_participants)
    sent = await _send_mvp_reminder(session, game, selected_participants)
    return {"game_id": game.id, "recipients": len(recipients), "email_sent": sent}


async def check_full_games_and_notify_admins(
    session: AsyncSession, now: Optional[datetime] = None
) -> List[int]:
    """
    Tell admins about scheduled games whose roster is exactly full.

    A game is notified again only after ADMIN_NOTIFICATION_COOLDOWN_HOURS.

    Returns:
        Ids of the games notified in this sweep
    """
    now = now or utcnow()
    result = await session.execute(
        select(Game).where(Game.status == GameStatus.SCHEDULED).order_by(Game.date)
    )
    admins = None
    notified = []

    for game in result.scalars().all():
        if len(game.participants or []) != ROSTER_SIZE:
            continue
        timeout = ensure_utc(game.admin_notification_timeout)
        if game.admin_notification_sent and (timeout is None or timeout > now):
            continue

        users = await user_service.get_users_by_ids(session, game.participants)
        names = [user_service.display_name(users[uid]) for uid in game.participants if uid in users]
        await notification_service.create_admin_notification(
            session,
            type=AdminNotificationType.MATCH_READY.value,
            message=(
                f"El partido del {game.date.strftime('%d/%m/%Y')} tiene {ROSTER_SIZE} jugadores "
                "y está listo para confirmar"
            ),
            game_id=game.id,
            month=game.date.month,
            year=game.date.year,
            action_required=True,
        )

        if admins is None:
            admins = await user_service.get_admin_users(session)
        email_sent = await email_service.send_admin_match_ready(
            [a["email"] for a in admins], game.date, names, session=session
        )
        if not email_sent:
            logger.error(f"Admin match_ready email failed for game {game.id}")

        game.admin_notification_sent = True
        game.admin_notification_timeout = now + timedelta(hours=ADMIN_NOTIFICATION_COOLDOWN_HOURS)
        await session.flush()
        notified.append(game.id)
        logger.info(f"Admins notified that game {game.id} is ready")

    return notified
