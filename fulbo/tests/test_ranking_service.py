"""
Unit tests for ranking service.
"""

from datetime import date

import pytest

from fulbo.database.models import Game, GameStatus, MvpVote
from fulbo.services import ranking_service
from fulbo.services.ranking_service import PlayerStats, StatsTracker

TEAM1 = ["p01", "p02", "p03", "p04", "p05"]
TEAM2 = ["p06", "p07", "p08", "p09", "p10"]


def _stats(user_id, games, wins, mvp_awards=0, mvp_votes=0):
    stats = PlayerStats(user_id)
    stats.game_count = games
    stats.win_count = wins
    stats.loss_count = games - wins
    stats.mvp_awards = mvp_awards
    stats.mvp_votes = mvp_votes
    return stats


async def _played(db_session, game_date, team1_score, team2_score, mvp=None, status=GameStatus.COMPLETED):
    result = {"team1_score": team1_score, "team2_score": team2_score}
    if mvp:
        result["mvp"] = mvp
    game = Game(
        date=game_date,
        status=status,
        participants=TEAM1 + TEAM2,
        waitlist=[],
        teams={"team1": list(TEAM1), "team2": list(TEAM2)},
        result=result,
    )
    db_session.add(game)
    await db_session.flush()
    return game


def test_calculate_winner():
    assert ranking_service.calculate_winner(3, 1) == 1
    assert ranking_service.calculate_winner(0, 2) == 2
    assert ranking_service.calculate_winner(2, 2) == -1


def test_mvp_ids():
    assert ranking_service.mvp_ids(None) == []
    assert ranking_service.mvp_ids("p01") == ["p01"]
    assert ranking_service.mvp_ids(["p01", "p02"]) == ["p01", "p02"]


def test_stats_tracker_process_game():
    tracker = StatsTracker()
    winner = tracker.process_game(TEAM1, TEAM2, 4, 2, mvp="p01")

    assert winner == 1
    p01 = tracker.players["p01"].to_dict()
    assert p01["wins"] == 1
    assert p01["goals_for"] == 4
    assert p01["goal_difference"] == 2
    assert p01["win_rate"] == 100.0
    assert p01["mvp_awards"] == 1
    assert tracker.players["p06"].loss_count == 1


def test_stats_tracker_draw_and_tied_mvp():
    tracker = StatsTracker()
    tracker.process_game(TEAM1, TEAM2, 1, 1, mvp=["p01", "p06"])

    assert tracker.players["p01"].draw_count == 1
    assert tracker.players["p06"].draw_count == 1
    assert tracker.players["p01"].win_count == 0
    assert tracker.players["p01"].mvp_awards == 1
    assert tracker.players["p06"].mvp_awards == 1


def test_record_mvp_votes_ignores_untracked():
    tracker = StatsTracker()
    tracker.process_game(TEAM1, TEAM2, 1, 0)
    tracker.record_mvp_votes(["p01", "p01", "ghost"])

    assert tracker.players["p01"].mvp_votes == 2
    assert "ghost" not in tracker.players


def test_best_win_rate_requires_min_games():
    veteran = _stats("vet", games=4, wins=3)
    rookie = _stats("rookie", games=1, wins=1)
    tied = _stats("tied", games=4, wins=3, mvp_awards=1)

    ranked = ranking_service.best_win_rate([veteran, rookie, tied])
    assert [p.user_id for p in ranked] == ["tied", "vet"]


def test_detailed_table_order():
    a = _stats("a", games=5, wins=3)
    b = _stats("b", games=3, wins=3)
    c = _stats("c", games=6, wins=1, mvp_votes=4)

    assert [p.user_id for p in ranking_service.detailed_table([a, b, c])] == ["b", "a", "c"]
    assert [p.user_id for p in ranking_service.mvp_votes_leaderboard([a, b, c])] == ["c"]


def test_hall_of_shame():
    games = [
        {"id": 1, "teams": {"team1": ["a"], "team2": ["b"]}},
        {"id": 2, "teams": {"team1": ["a"], "team2": ["c"]}},
    ]
    rows = ranking_service.hall_of_shame(["a", "b", "c", "d"], games)

    assert rows[0] == {"user_id": "d", "attended": 0, "absences": 2, "total_games": 2}
    assert {r["user_id"] for r in rows} == {"b", "c", "d"}


@pytest.mark.asyncio
async def test_compute_rankings_by_quarter(db_session, make_players):
    await make_players(10)
    await _played(db_session, date(2025, 1, 5), 3, 1, mvp="p01")
    await _played(db_session, date(2025, 2, 2), 2, 0)
    await _played(db_session, date(2025, 4, 6), 1, 0)
    # Not ranked: no result yet
    db_session.add(
        Game(
            date=date(2025, 2, 9),
            status=GameStatus.COMPLETED,
            participants=TEAM1 + TEAM2,
            waitlist=[],
            teams={"team1": list(TEAM1), "team2": list(TEAM2)},
        )
    )
    await db_session.flush()

    q1 = await ranking_service.compute_rankings(db_session, "2025-Q1")
    assert q1["total_games"] == 2
    top = q1["top_winners"][0]
    assert top["wins"] == 2
    assert top["user_id"] in TEAM1
    assert top["name"].startswith("P")
    assert q1["mvp_awards"][0]["user_id"] == "p01"
    assert q1["hall_of_shame"] == []

    all_time = await ranking_service.compute_rankings(db_session)
    assert all_time["total_games"] == 3
    assert all_time["top_winners"][0]["wins"] == 3
    assert len(all_time["best_win_rate"]) == 10


@pytest.mark.asyncio
async def test_compute_rankings_counts_votes_in_scope(db_session, make_players):
    await make_players(10)
    january = await _played(db_session, date(2025, 1, 5), 1, 0)
    april = await _played(db_session, date(2025, 4, 6), 1, 0)
    db_session.add_all([
        MvpVote(game_id=january.id, voted_for_id="p02"),
        MvpVote(game_id=april.id, voted_for_id="p02"),
        MvpVote(game_id=april.id, voted_for_id="p03"),
    ])
    await db_session.flush()

    q1 = await ranking_service.compute_rankings(db_session, "2025-Q1")
    assert [(r["user_id"], r["mvp_votes"]) for r in q1["mvp_votes"]] == [("p02", 1)]


@pytest.mark.asyncio
async def test_compute_rankings_rejects_bad_quarter(db_session):
    with pytest.raises(ValueError, match="Invalid quarter"):
        await ranking_service.compute_rankings(db_session, "2025-Q5")


@pytest.mark.asyncio
async def test_hall_of_shame_lists_absent_active_players(db_session, make_players, make_user):
    await make_players(10)
    await make_user("bench", name="Banco")
    await make_user("boss", is_admin=True)
    await _played(db_session, date(2025, 1, 5), 1, 0)

    rankings = await ranking_service.compute_rankings(db_session)
    assert rankings["hall_of_shame"] == [
        {"user_id": "bench", "attended": 0, "absences": 1, "total_games": 1, "name": "Banco"}
    ]


@pytest.mark.asyncio
async def test_hall_of_shame_counts_unscored_completed_games(db_session, make_players, make_user):
    await make_players(10)
    await make_user("bench", name="Banco")
    await _played(db_session, date(2025, 1, 5), 1, 0)
    db_session.add(
        Game(
            date=date(2025, 1, 12),
            status=GameStatus.COMPLETED,
            participants=TEAM1 + TEAM2,
            waitlist=[],
            teams={"team1": list(TEAM1), "team2": list(TEAM2)},
        )
    )
    await db_session.flush()

    rankings = await ranking_service.compute_rankings(db_session)
    assert rankings["total_games"] == 1
    assert rankings["hall_of_shame"] == [
        {"user_id": "bench", "attended": 0, "absences": 2, "total_games": 2, "name": "Banco"}
    ]


@pytest.mark.asyncio
async def test_player_stats_and_quarters(db_session, make_players):
    await make_players(10)
    await _played(db_session, date(2024, 11, 3), 0, 2)
    await _played(db_session, date(2025, 1, 5), 3, 1)
    await _played(db_session, date(2025, 3, 2), 2, 2, status=GameStatus.CONFIRMED)

    stats = await ranking_service.get_player_stats(db_session, "p01")
    assert stats["games"] == 2
    assert stats["wins"] == 1
    assert stats["losses"] == 1
    assert stats["total_games"] == 2

    empty = await ranking_service.get_player_stats(db_session, "nobody", quarter="2025-Q1")
    assert empty["games"] == 0
    assert empty["quarter"] == "2025-Q1"

    assert await ranking_service.list_quarters(db_session) == ["2025-Q1", "2024-Q4"]
