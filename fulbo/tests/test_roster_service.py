"""
Unit tests for the game roster manager and lifecycle.
"""

import random
from datetime import date, datetime, timedelta, timezone

import pytest

from fulbo.database.models import AdminNotificationType
from fulbo.services import availability_service, notification_service, roster_service
from fulbo.services.roster_service import (
    GameConflictError,
    GameNotFoundError,
    InvalidTransitionError,
    RosterError,
)
from fulbo.services.user_service import UserNotFoundError

TODAY = date(2025, 3, 1)
SUNDAY = date(2025, 3, 16)


async def _vote_all(db_session, user_ids, day=16):
    for uid in user_ids:
        await availability_service.set_availability(db_session, uid, 3, 2025, [day], today=TODAY)


async def _game(db_session, make_players, count=10, waitlisted=0):
    players = await make_players(count + waitlisted)
    return await roster_service.create_game(db_session, SUNDAY, participants=players)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def test_split_roster():
    voters = [f"u{i}" for i in range(12)]
    participants, waitlist = roster_service.split_roster(voters + ["u0"])
    assert participants == voters[:10]
    assert waitlist == ["u10", "u11"]


def test_generate_teams():
    players = [f"u{i}" for i in range(10)]
    teams = roster_service.generate_teams(players, random.Random(7))

    assert len(teams["team1"]) == 5
    assert len(teams["team2"]) == 5
    assert sorted(teams["team1"] + teams["team2"]) == sorted(players)

    with pytest.raises(RosterError):
        roster_service.generate_teams(players[:9])


def test_prune_teams():
    teams = {"team1": ["a", "b"], "team2": ["c"]}
    assert roster_service.prune_teams(teams, ["a", "c"]) == {"team1": ["a"], "team2": ["c"]}
    assert roster_service.prune_teams(None, ["a"]) is None


def test_check_roster():
    roster_service.check_roster(["a", "b"], ["c"], {"team1": ["a"], "team2": ["c"]})

    with pytest.raises(RosterError, match="both a participant"):
        roster_service.check_roster(["a"], ["a"], None)
    with pytest.raises(RosterError, match="Duplicate"):
        roster_service.check_roster(["a", "a"], [], None)
    with pytest.raises(RosterError, match="more than"):
        roster_service.check_roster([f"u{i}" for i in range(11)], [], None)
    with pytest.raises(RosterError, match="both teams"):
        roster_service.check_roster(["a"], [], {"team1": ["a"], "team2": ["a"]})
    with pytest.raises(RosterError, match="on the roster"):
        roster_service.check_roster(["a"], [], {"team1": ["z"], "team2": []})


# ---------------------------------------------------------------------------
# Creation and the game sweep
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_game(db_session, make_players):
    game = await _game(db_session, make_players, waitlisted=2)

    assert game["status"] == "scheduled"
    assert len(game["participants"]) == 10
    assert game["waitlist"] == ["p11", "p12"]
    assert game["date"] == "2025-03-16"


@pytest.mark.asyncio
async def test_create_game_validation(db_session):
    with pytest.raises(ValueError, match="not a Sunday"):
        await roster_service.create_game(db_session, date(2025, 3, 17))

    await roster_service.create_game(db_session, SUNDAY)
    with pytest.raises(GameConflictError):
        await roster_service.create_game(db_session, SUNDAY)


@pytest.mark.asyncio
async def test_get_game_not_found(db_session):
    with pytest.raises(GameNotFoundError):
        await roster_service.get_game(db_session, 404)


@pytest.mark.asyncio
async def test_sweep_creates_game_with_waitlist(db_session, make_players):
    players = await make_players(12)
    await _vote_all(db_session, players)
    await _vote_all(db_session, players[:9], day=23)

    summary = await roster_service.check_and_create_games(db_session, today=TODAY)

    assert len(summary["created"]) == 1
    game = summary["created"][0]
    assert game["date"] == "2025-03-16"
    assert game["participants"] == players[:10]
    assert game["waitlist"] == ["p11", "p12"]
    assert summary["notified"] == [game["id"]]

    feed = await notification_service.list_admin_notifications(db_session)
    assert feed["total_count"] == 1
    notification = feed["notifications"][0]
    assert notification["type"] == AdminNotificationType.MATCH_READY.value
    assert notification["game_id"] == game["id"]

    # Second sweep is idempotent
    again = await roster_service.check_and_create_games(db_session, today=TODAY)
    assert again == {"created": [], "updated": [], "notified": []}


@pytest.mark.asyncio
async def test_sweep_resyncs_scheduled_game(db_session, make_players):
    players = await make_players(11)
    await _vote_all(db_session, players[:10])
    first = await roster_service.check_and_create_games(db_session, today=TODAY)
    game_id = first["created"][0]["id"]

    await _vote_all(db_session, players[10:])
    summary = await roster_service.check_and_create_games(db_session, today=TODAY)

    assert summary["created"] == []
    assert [g["id"] for g in summary["updated"]] == [game_id]
    assert summary["updated"][0]["waitlist"] == ["p11"]


@pytest.mark.asyncio
async def test_sweep_keeps_admin_roster_edits(db_session, make_players, make_user):
    players = await make_players(11)
    await _vote_all(db_session, players)
    first = await roster_service.check_and_create_games(db_session, today=TODAY)
    game_id = first["created"][0]["id"]

    await roster_service.demote_to_waitlist(db_session, game_id, "p01")
    edited = await roster_service.promote_from_waitlist(db_session, game_id, "p11")
    assert edited["waitlist"] == ["p01"]

    # A vote for another Sunday runs the sweep again
    await make_user("outsider")
    await _vote_all(db_session, ["outsider"], day=23)
    summary = await roster_service.check_and_create_games(db_session, today=TODAY)

    assert summary["updated"] == []
    game = await roster_service.get_game(db_session, game_id)
    assert game["participants"] == edited["participants"]
    assert game["waitlist"] == ["p01"]


@pytest.mark.asyncio
async def test_sweep_marks_past_games_as_notified(db_session, make_players):
    players = await make_players(10)
    for uid in players:
        await availability_service.set_availability(db_session, uid, 3, 2025, [2], today=TODAY)

    summary = await roster_service.check_and_create_games(db_session, today=date(2025, 3, 5))

    assert summary["created"][0]["admin_notification_sent"] is True
    assert summary["notified"] == []


@pytest.mark.asyncio
async def test_admin_notification_cooldown(db_session, make_players):
    game = await _game(db_session, make_players)
    now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    assert await roster_service.check_full_games_and_notify_admins(db_session, now=now) == [game["id"]]
    later = now + timedelta(hours=1)
    assert await roster_service.check_full_games_and_notify_admins(db_session, now=later) == []
    much_later = now + timedelta(hours=25)
    assert await roster_service.check_full_games_and_notify_admins(db_session, now=much_later) == [
        game["id"]
    ]
    assert await notification_service.get_unread_count(db_session) == 2


@pytest.mark.asyncio
async def test_partial_game_is_not_notified(db_session, make_players):
    await _game(db_session, make_players, count=9)
    assert await roster_service.check_full_games_and_notify_admins(db_session) == []


# ---------------------------------------------------------------------------
# Roster mutations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_promote_and_demote(db_session, make_players):
    game = await _game(db_session, make_players, waitlisted=2)

    with pytest.raises(RosterError, match="already has"):
        await roster_service.promote_from_waitlist(db_session, game["id"], "p11")

    game = await roster_service.demote_to_waitlist(db_session, game["id"], "p01")
    assert "p01" not in game["participants"]
    assert game["waitlist"] == ["p01", "p11", "p12"]

    game = await roster_service.promote_from_waitlist(db_session, game["id"], "p12")
    assert game["participants"][-1] == "p12"
    assert game["waitlist"] == ["p01", "p11"]

    with pytest.raises(RosterError, match="not on the waitlist"):
        await roster_service.promote_from_waitlist(db_session, game["id"], "p12")


@pytest.mark.asyncio
async def test_remove_from_match_prunes_teams(db_session, make_players):
    game = await _game(db_session, make_players)
    game = await roster_service.regenerate_teams(db_session, game["id"], rng=random.Random(1))

    game = await roster_service.remove_from_match(db_session, game["id"], "p05")

    assert "p05" not in game["participants"]
    assert "p05" not in game["teams"]["team1"] + game["teams"]["team2"]
    with pytest.raises(RosterError):
        await roster_service.remove_from_match(db_session, game["id"], "p05")


@pytest.mark.asyncio
async def test_add_to_waitlist(db_session, make_players, make_user):
    game = await _game(db_session, make_players)
    await make_user("extra")

    game = await roster_service.add_to_waitlist(db_session, game["id"], "extra")
    assert game["waitlist"] == ["extra"]

    with pytest.raises(RosterError, match="already on the waitlist"):
        await roster_service.add_to_waitlist(db_session, game["id"], "extra")
    with pytest.raises(RosterError, match="already a participant"):
        await roster_service.add_to_waitlist(db_session, game["id"], "p01")
    with pytest.raises(UserNotFoundError):
        await roster_service.add_to_waitlist(db_session, game["id"], "ghost")


@pytest.mark.asyncio
async def test_replace_participant(db_session, make_players, make_user):
    game = await _game(db_session, make_players, waitlisted=1)
    await make_user("sub")

    game = await roster_service.replace_participant(db_session, game["id"], "p01")
    assert "p01" not in game["participants"] + game["waitlist"]
    assert game["participants"][-1] == "p11"
    assert game["waitlist"] == []

    game = await roster_service.replace_participant(db_session, game["id"], "p02", "sub")
    assert game["participants"][-1] == "sub"
    assert len(game["participants"]) == 10


@pytest.mark.asyncio
async def test_release_player(db_session, make_players):
    game = await _game(db_session, make_players, waitlisted=2)

    released = await roster_service.release_player(db_session, "p03", SUNDAY)
    assert "p03" not in released["participants"]
    assert released["participants"][-1] == "p11"
    assert released["waitlist"] == ["p12"]

    released = await roster_service.release_player(db_session, "p12", SUNDAY)
    assert released["waitlist"] == []

    assert await roster_service.release_player(db_session, "nobody", SUNDAY) is None
    assert await roster_service.release_player(db_session, "p01", date(2025, 3, 23)) is None

    await roster_service.confirm_game(db_session, game["id"], {"location": "Cancha 5"}, notify=False)
    assert await roster_service.release_player(db_session, "p01", SUNDAY) is None


@pytest.mark.asyncio
async def test_team_assignment(db_session, make_players):
    game = await _game(db_session, make_players)

    game = await roster_service.assign_to_team(db_session, game["id"], "p01", 1)
    assert game["teams"] == {"team1": ["p01"], "team2": []}

    game = await roster_service.assign_to_team(db_session, game["id"], "p01", 2)
    assert game["teams"] == {"team1": [], "team2": ["p01"]}

    game = await roster_service.remove_from_team(db_session, game["id"], "p01")
    assert game["teams"] == {"team1": [], "team2": []}
    assert "p01" in game["participants"]

    with pytest.raises(ValueError):
        await roster_service.assign_to_team(db_session, game["id"], "p01", 3)
    with pytest.raises(RosterError):
        await roster_service.assign_to_team(db_session, game["id"], "ghost", 1)


@pytest.mark.asyncio
async def test_regenerate_and_revert_teams(db_session, make_players):
    game = await _game(db_session, make_players)

    first = await roster_service.regenerate_teams(db_session, game["id"], rng=random.Random(1))
    assert first["original_teams"] == first["teams"]

    second = await roster_service.regenerate_teams(db_session, game["id"], rng=random.Random(2))
    assert second["original_teams"] == first["teams"]

    reverted = await roster_service.revert_to_original_teams(db_session, game["id"])
    assert reverted["teams"] == first["teams"]


@pytest.mark.asyncio
async def test_revert_teams_after_player_left(db_session, make_players):
    game = await _game(db_session, make_players, waitlisted=1)
    first = await roster_service.regenerate_teams(db_session, game["id"], rng=random.Random(1))

    await roster_service.remove_from_match(db_session, game["id"], "p01")
    await roster_service.promote_from_waitlist(db_session, game["id"], "p11")
    reverted = await roster_service.revert_to_original_teams(db_session, game["id"])

    assert reverted["teams"] == {
        "team1": [uid for uid in first["teams"]["team1"] if uid != "p01"],
        "team2": [uid for uid in first["teams"]["team2"] if uid != "p01"],
    }
    assert reverted["original_teams"] == first["original_teams"]


@pytest.mark.asyncio
async def test_regenerate_teams_needs_full_roster(db_session, make_players):
    game = await _game(db_session, make_players, count=8)
    with pytest.raises(RosterError):
        await roster_service.regenerate_teams(db_session, game["id"])


@pytest.mark.asyncio
async def test_sync_with_voters_after_unvote(db_session, make_players):
    players = await make_players(12)
    await _vote_all(db_session, players)
    summary = await roster_service.check_and_create_games(db_session, today=TODAY)
    game_id = summary["created"][0]["id"]
    await roster_service.regenerate_teams(db_session, game_id, rng=random.Random(3))

    await availability_service.unvote(db_session, "p03", 3, 2025, [16], today=TODAY)
    game = await roster_service.sync_with_voters(db_session, game_id)

    assert "p03" not in game["participants"]
    assert game["participants"][-1] == "p11"
    assert game["waitlist"] == ["p12"]
    assert "p03" not in game["teams"]["team1"] + game["teams"]["team2"]


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_confirm_game(db_session, make_players):
    game = await _game(db_session, make_players)
    await roster_service.check_full_games_and_notify_admins(db_session)

    with pytest.raises(ValueError, match="location is required"):
        await roster_service.confirm_game(db_session, game["id"], {"location": "  "})

    confirmed = await roster_service.confirm_game(
        db_session, game["id"], {"location": "Cancha 5", "time": "11:30", "cost": 1200}
    )
    assert confirmed["status"] == "confirmed"
    assert confirmed["custom_time"] == "11:30"
    assert confirmed["calendar_event_id"].startswith("fulbo_")
    assert confirmed["email_sent"] is True
    assert await notification_service.get_unread_count(db_session) == 0

    # Clearing the location of a confirmed game keeps it confirmed
    updated = await roster_service.confirm_game(db_session, game["id"], {"location": None})
    assert updated["status"] == "confirmed"
    assert updated["reservation_info"] == {}
    assert updated["email_sent"] is None


@pytest.mark.asyncio
async def test_invalid_transitions(db_session, make_players):
    game = await _game(db_session, make_players)

    with pytest.raises(InvalidTransitionError):
        await roster_service.complete_game(db_session, game["id"])
    with pytest.raises(InvalidTransitionError):
        await roster_service.reopen_game(db_session, game["id"])

    await roster_service.cancel_game(db_session, game["id"])
    with pytest.raises(InvalidTransitionError):
        await roster_service.confirm_game(db_session, game["id"], {"location": "Cancha 5"})
    with pytest.raises(InvalidTransitionError):
        await roster_service.cancel_game(db_session, game["id"])
    with pytest.raises(RosterError):
        await roster_service.remove_from_match(db_session, game["id"], "p01")


@pytest.mark.asyncio
async def test_complete_and_reopen(db_session, make_players):
    game = await _game(db_session, make_players)
    await roster_service.confirm_game(db_session, game["id"], {"location": "Cancha 5"}, notify=False)

    reopened = await roster_service.reopen_game(db_session, game["id"], clear_reservation=True)
    assert reopened["status"] == "scheduled"
    assert reopened["reservation_info"] is None
    assert reopened["calendar_event_id"] is None

    await roster_service.confirm_game(db_session, game["id"], {"location": "Cancha 7"}, notify=False)
    completed = await roster_service.complete_game(db_session, game["id"], send_mvp_reminder=True)
    assert completed["status"] == "completed"
    assert completed["email_sent"] is True


@pytest.mark.asyncio
async def test_update_game_routes_status_changes(db_session, make_players):
    game = await _game(db_session, make_players)

    updated = await roster_service.update_game(db_session, game["id"], custom_time="09:00")
    assert updated["custom_time"] == "09:00"
    assert updated["status"] == "scheduled"

    confirmed = await roster_service.update_game(
        db_session, game["id"], status="confirmed", reservation_info={"location": "Cancha 5"}
    )
    assert confirmed["status"] == "confirmed"

    cancelled = await roster_service.update_game(db_session, game["id"], status="cancelled")
    assert cancelled["status"] == "cancelled"


@pytest.mark.asyncio
async def test_emails_require_status(db_session, make_players):
    game = await _game(db_session, make_players)

    with pytest.raises(InvalidTransitionError):
        await roster_service.send_match_confirmation(db_session, game["id"])
    with pytest.raises(InvalidTransitionError):
        await roster_service.send_mvp_reminder(db_session, game["id"])

    await roster_service.confirm_game(db_session, game["id"], {"location": "Cancha 5"}, notify=False)
    sent = await roster_service.send_match_confirmation(db_session, game["id"], ["p01", "p02"])
    assert sent == {"game_id": game["id"], "recipients": 2, "email_sent": True}


@pytest.mark.asyncio
async def test_delete_game(db_session, make_players):
    game = await _game(db_session, make_players)

    assert await roster_service.delete_game(db_session, game["id"]) is True
    assert await roster_service.delete_game(db_session, game["id"]) is False
    assert await roster_service.get_game_by_date(db_session, SUNDAY) is None


@pytest.mark.asyncio
async def test_list_games_filters(db_session):
    await roster_service.create_game(db_session, date(2025, 3, 16))
    await roster_service.create_game(db_session, date(2025, 4, 6))
    cancelled = await roster_service.create_game(db_session, date(2025, 4, 13))
    await roster_service.cancel_game(db_session, cancelled["id"])

    assert [g["date"] for g in await roster_service.list_games(db_session, year=2025, month=4)] == [
        "2025-04-06",
        "2025-04-13",
    ]
    assert [g["date"] for g in await roster_service.list_games(db_session, status="cancelled")] == [
        "2025-04-13"
    ]
