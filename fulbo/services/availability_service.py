"""
Availability ledger: which Sundays each member can play, per month.

One row per (user, month, year) with last-write-wins semantics. Days taken by
a confirmed full game are locked: they cannot be added and cannot be removed.
"""

from datetime import date
from typing import List, Dict, Optional, Iterable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from fulbo.database.db import upsert_statement
from fulbo.database.models import (
    Game,
    GameStatus,
    MonthlyAvailability,
    ReminderStatus,
    User,
)
from fulbo.services import email_service, notification_service, user_service
from fulbo.utils.constants import MAX_MONTHS_AHEAD, ROSTER_SIZE
from fulbo.utils.datetime_utils import (
    utcnow,
    get_sundays_in_month,
    add_months,
    months_between,
)
import logging

logger = logging.getLogger(__name__)


class BlockedDayError(ValueError):
    """Raised when a vote for a day locked by a confirmed full game would be removed."""


def _availability_to_dict(row: Optional[MonthlyAvailability], user_id: str, month: int, year: int) -> Dict:
    if row is None:
        return {
            "user_id": user_id,
            "month": month,
            "year": year,
            "available_sundays": [],
            "cannot_play_any_day": False,
            "has_voted": False,
            "updated_at": None,
        }
    return {
        "user_id": row.user_id,
        "month": row.month,
        "year": row.year,
        "available_sundays": sorted(row.available_sundays or []),
        "cannot_play_any_day": row.cannot_play_any_day,
        "has_voted": row.has_voted,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


def validate_voting_period(month: int, year: int, today: Optional[date] = None) -> None:
    """
    Check a month is open for voting.

    Raises:
        ValueError: If the month is invalid, already over, or too far ahead
    """
    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    today = today or utcnow().date()
    offset = months_between(today.year, today.month, year, month)
    if offset < 0:
        raise ValueError("Voting for past months is closed")
    if offset > MAX_MONTHS_AHEAD:
        raise ValueError(f"Cannot vote more than {MAX_MONTHS_AHEAD} months ahead")


async def _get_row(
    session: AsyncSession, user_id: str, month: int, year: int
) -> Optional[MonthlyAvailability]:
    result = await session.execute(
        select(MonthlyAvailability).where(
            MonthlyAvailability.user_id == user_id,
            MonthlyAvailability.month == month,
            MonthlyAvailability.year == year,
        )
    )
    return result.scalar_one_or_none()


async def get_blocked_days(session: AsyncSession, month: int, year: int) -> List[int]:
    """
    Sundays of a month already taken by a confirmed game with a full roster.

    Returns:
        Sorted day-of-month numbers
    """
    first_day = date(year, month, 1)
    next_year, next_month = add_months(year, month, 1)
    result = await session.execute(
        select(Game).where(
            Game.date >= first_day,
            Game.date < date(next_year, next_month, 1),
            Game.status == GameStatus.CONFIRMED,
        )
    )
    return sorted(
        game.date.day
        for game in result.scalars().all()
        if len(game.participants or []) >= ROSTER_SIZE
    )


def filter_available_sundays(days: Iterable[int], blocked_days: Iterable[int]) -> List[int]:
    """Drop blocked days from a requested set."""
    blocked = set(blocked_days)
    return sorted(day for day in set(days) if day not in blocked)


async def _write_row(
    session: AsyncSession,
    user_id: str,
    month: int,
    year: int,
    days: List[int],
    cannot_play_any_day: bool,
) -> Dict:
    stmt = upsert_statement(
        session,
        MonthlyAvailability,
        {
            "user_id": user_id,
            "month": month,
            "year": year,
            "available_sundays": sorted(days),
            "cannot_play_any_day": cannot_play_any_day,
            "has_voted": True,
            "updated_at": utcnow(),
        },
        index_elements=["user_id", "month", "year"],
        update_fields=["available_sundays", "cannot_play_any_day", "has_voted", "updated_at"],
    )
    await session.execute(stmt)
    await session.flush()

    row = await _get_row(session, user_id, month, year)
    await session.refresh(row)
    return _availability_to_dict(row, user_id, month, year)


async def set_availability(
    session: AsyncSession,
    user_id: str,
    month: int,
    year: int,
    days: List[int],
    cannot_play_any_day: bool = False,
    today: Optional[date] = None,
) -> Dict:
    """
    Record a user's vote for a month.

    Blocked days in the request are silently dropped. Removing a previously
    selected blocked day is refused. Marks the user as voted and deactivates
    any pending reminder for the month.

    Args:
        session: Database session
        user_id: Voter
        month: Month (1-12)
        year: Year
        days: Day-of-month numbers of the Sundays the user can play
        cannot_play_any_day: Blanket "cannot play this month" flag, clears days
        today: Reference date (defaults to today, UTC)

    Returns:
        Availability dictionary

    Raises:
        ValueError: If the month is closed or a day is invalid or already past
        BlockedDayError: If a blocked day would be removed
    """
    today = today or utcnow().date()
    validate_voting_period(month, year, today)

    requested = [] if cannot_play_any_day else sorted(set(days or []))
    sundays = set(get_sundays_in_month(year, month))
    for day in requested:
        if day not in sundays:
            raise ValueError(f"Day {day} is not a Sunday of {month}/{year}")

    existing = await _get_row(session, user_id, month, year)
    previous_days = set(existing.available_sundays or []) if existing else set()

    for day in requested:
        if day not in previous_days and date(year, month, day) < today:
            raise ValueError(f"Cannot vote for a past date ({day}/{month}/{year})")

    blocked_days = await get_blocked_days(session, month, year)
    removed_blocked = sorted(d for d in previous_days if d in blocked_days and d not in requested)
    if removed_blocked:
        raise BlockedDayError(
            f"Cannot remove days already confirmed with a full roster: {removed_blocked}"
        )

    kept_blocked = [d for d in requested if d in blocked_days and d in previous_days]
    dropped = [d for d in requested if d in blocked_days and d not in previous_days]
    if dropped:
        logger.info(f"Dropped blocked days {dropped} from vote of user {user_id} for {month}/{year}")
    final_days = filter_available_sundays(requested, blocked_days) + kept_blocked

    availability = await _write_row(
        session, user_id, month, year, final_days, bool(cannot_play_any_day)
    )
    await deactivate_reminder(session, user_id, month, year)

    logger.info(
        f"User {user_id} voted for {month}/{year}: days={availability['available_sundays']}, "
        f"cannot_play_any_day={availability['cannot_play_any_day']}"
    )
    return availability


async def unvote(
    session: AsyncSession,
    user_id: str,
    month: int,
    year: int,
    days: List[int],
    today: Optional[date] = None,
) -> Dict:
    """
    Remove days from a user's vote.

    Raises:
        ValueError: If the month is closed
        BlockedDayError: If one of the days is blocked
    """
    today = today or utcnow().date()
    validate_voting_period(month, year, today)

    existing = await _get_row(session, user_id, month, year)
    previous_days = set(existing.available_sundays or []) if existing else set()
    to_remove = set(days or []) & previous_days

    blocked_days = await get_blocked_days(session, month, year)
    removed_blocked = sorted(d for d in to_remove if d in blocked_days)
    if removed_blocked:
        raise BlockedDayError(
            f"Cannot remove days already confirmed with a full roster: {removed_blocked}"
        )

    cannot_play_any_day = existing.cannot_play_any_day if existing else False
    availability = await _write_row(
        session, user_id, month, year, sorted(previous_days - to_remove), cannot_play_any_day
    )
    logger.info(f"User {user_id} removed days {sorted(to_remove)} for {month}/{year}")
    return availability


async def get_availability(session: AsyncSession, user_id: str, month: int, year: int) -> List[int]:
    """Days a user marked available (empty if never voted)."""
    row = await _get_row(session, user_id, month, year)
    return sorted(row.available_sundays or []) if row else []


async def get_availability_record(session: AsyncSession, user_id: str, month: int, year: int) -> Dict:
    """Full ledger row for a user and month."""
    row = await _get_row(session, user_id, month, year)
    return _availability_to_dict(row, user_id, month, year)


async def get_voting_status(session: AsyncSession, user_id: str, month: int, year: int) -> Dict:
    """Whether a user voted for a month and whether they opted out entirely."""
    row = await _get_row(session, user_id, month, year)
    return {
        "has_voted": bool(row and row.has_voted),
        "cannot_play_any_day": bool(row and row.cannot_play_any_day),
    }


async def get_pending_voters(session: AsyncSession, month: int, year: int) -> List[Dict]:
    """Whitelisted, non-admin users without a vote for the month."""
    players = await user_service.get_active_players(session)
    result = await session.execute(
        select(MonthlyAvailability.user_id).where(
            MonthlyAvailability.month == month,
            MonthlyAvailability.year == year,
            MonthlyAvailability.has_voted == True,  # noqa: E712
        )
    )
    voted = set(result.scalars().all())
    return [p for p in players if p["id"] not in voted]


async def _whitelisted_rows(session: AsyncSession, month: int, year: int) -> List[MonthlyAvailability]:
    result = await session.execute(
        select(MonthlyAvailability)
        .join(User, User.id == MonthlyAvailability.user_id)
        .where(
            MonthlyAvailability.month == month,
            MonthlyAvailability.year == year,
            MonthlyAvailability.cannot_play_any_day == False,  # noqa: E712
            User.is_whitelisted == True,  # noqa: E712
        )
        .order_by(MonthlyAvailability.updated_at, MonthlyAvailability.id)
    )
    return list(result.scalars().all())


async def get_voters_for_date(session: AsyncSession, game_date: date) -> List[str]:
    """
    Whitelisted users available on a date, earliest vote first.

    Returns:
        Ordered list of user ids
    """
    rows = await _whitelisted_rows(session, game_date.month, game_date.year)
    return [row.user_id for row in rows if game_date.day in (row.available_sundays or [])]


async def get_votes_by_day(session: AsyncSession, month: int, year: int) -> Dict[int, List[str]]:
    """Ordered voter ids for each Sunday of a month."""
    rows = await _whitelisted_rows(session, month, year)
    votes = {day: [] for day in get_sundays_in_month(year, month)}
    for row in rows:
        for day in row.available_sundays or []:
            if day in votes:
                votes[day].append(row.user_id)
    return votes


async def get_month_summary(session: AsyncSession, month: int, year: int) -> Dict:
    """
    Per-Sunday vote counts for a month.

    Returns:
        Dict with sundays (day, voters, count, blocked), cannot_play and pending_count
    """
    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")

    votes = await get_votes_by_day(session, month, year)
    blocked_days = set(await get_blocked_days(session, month, year))

    result = await session.execute(
        select(MonthlyAvailability.user_id).where(
            MonthlyAvailability.month == month,
            MonthlyAvailability.year == year,
            MonthlyAvailability.cannot_play_any_day == True,  # noqa: E712
        )
    )
    cannot_play = sorted(result.scalars().all())
    pending = await get_pending_voters(session, month, year)

    return {
        "month": month,
        "year": year,
        "sundays": [
            {
                "day": day,
                "voters": voters,
                "count": len(voters),
                "blocked": day in blocked_days,
            }
            for day, voters in sorted(votes.items())
        ],
        "cannot_play": cannot_play,
        "pending_count": len(pending),
    }


async def deactivate_reminder(session: AsyncSession, user_id: str, month: int, year: int) -> None:
    """Stop reminding a user about a month."""
    await session.execute(
        update(ReminderStatus)
        .where(
            ReminderStatus.user_id == user_id,
            ReminderStatus.month == month,
            ReminderStatus.year == year,
        )
        .values(is_active=False, updated_at=utcnow())
    )
    await session.flush()


async def record_reminder_sent(session: AsyncSession, user_id: str, month: int, year: int) -> Dict:
    """Bump the reminder counter for a user and month."""
    result = await session.execute(
        select(ReminderStatus).where(
            ReminderStatus.user_id == user_id,
            ReminderStatus.month == month,
            ReminderStatus.year == year,
        )
    )
    status = result.scalar_one_or_none()
    now = utcnow()
    if status is None:
        status = ReminderStatus(
            user_id=user_id,
            month=month,
            year=year,
            last_reminder_sent=now,
            reminder_count=1,
            is_active=True,
        )
        session.add(status)
    else:
        status.last_reminder_sent = now
        status.reminder_count = (status.reminder_count or 0) + 1
        status.is_active = True
        status.updated_at = now
    await session.flush()
    await session.refresh(status)
    return {
        "user_id": status.user_id,
        "month": status.month,
        "year": status.year,
        "reminder_count": status.reminder_count,
        "is_active": status.is_active,
    }


async def send_voting_reminders(session: AsyncSession, month: int, year: int) -> Dict:
    """
    Email every pending voter and leave a voting_reminder note for admins.

    Email failures are logged and reported, never raised.

    Returns:
        Dict with pending users, email_sent flag and notification
    """
    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")

    pending = await get_pending_voters(session, month, year)
    if not pending:
        logger.info(f"Everybody voted for {month}/{year}; no reminders sent")
        return {"pending": [], "email_sent": True, "notification": None}

    email_sent = await email_service.send_voting_reminder(
        [p["email"] for p in pending], month, year, session=session
    )
    if not email_sent:
        logger.error(f"Voting reminder email failed for {month}/{year}")

    for user in pending:
        await record_reminder_sent(session, user["id"], month, year)

    notification = await notification_service.create_voting_reminder_notification(
        session, month, year, [user_service.display_name(p) for p in pending]
    )
    logger.info(f"Voting reminders processed for {len(pending)} user(s) for {month}/{year}")
    return {"pending": pending, "email_sent": email_sent, "notification": notification}
