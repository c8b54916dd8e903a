"""
Ranking service.
Processes completed games and computes player statistics and leaderboards.
"""

import logging
from typing import List, Dict, Optional, Iterable, Union
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from fulbo.database.models import Game, GameStatus, MvpVote
from fulbo.services import user_service
from fulbo.utils.constants import MIN_GAMES_FOR_WIN_RATE
from fulbo.utils.datetime_utils import get_quarter, quarter_bounds

logger = logging.getLogger(__name__)


# ============================================================================
# Game Processing Helpers
# ============================================================================

def calculate_winner(team1_score: int, team2_score: int) -> int:
    """
    Determine winner: 1 = team1, 2 = team2, -1 = draw.

    Args:
        team1_score: Score for team 1
        team2_score: Score for team 2

    Returns:
        Winner indicator (1, 2, or -1 for draw)
    """
    if team1_score > team2_score:
        return 1
    elif team2_score > team1_score:
        return 2
    else:
        return -1


def mvp_ids(mvp: Union[str, List[str], None]) -> List[str]:
    """Normalize a stored MVP (single id or tie list) to a list."""
    if not mvp:
        return []
    if isinstance(mvp, list):
        return list(mvp)
    return [mvp]


def has_teams(game: Game) -> bool:
    teams = game.teams or {}
    return bool(teams.get("team1")) and bool(teams.get("team2"))


def is_ranked(game: Game) -> bool:
    """A completed game with a score and both teams counts for rankings."""
    result = game.result or {}
    return (
        game.status == GameStatus.COMPLETED
        and result.get("team1_score") is not None
        and result.get("team2_score") is not None
        and has_teams(game)
    )


# ============================================================================
# PlayerStats Class
# ============================================================================

class PlayerStats:
    """Encapsulates all statistics for a single player."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        self.game_count = 0
        self.win_count = 0
        self.loss_count = 0
        self.draw_count = 0
        self.goals_for = 0
        self.goals_against = 0
        self.mvp_awards = 0
        self.mvp_votes = 0

    @property
    def win_rate(self) -> float:
        """Calculate overall win rate."""
        if self.game_count == 0:
            return 0.0
        return self.win_count / self.game_count

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def to_dict(self) -> Dict:
        return {
            "user_id": self.user_id,
            "games": self.game_count,
            "wins": self.win_count,
            "losses": self.loss_count,
            "draws": self.draw_count,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "goal_difference": self.goal_difference,
            "win_rate": round(self.win_rate * 100, 1),
            "mvp_awards": self.mvp_awards,
            "mvp_votes": self.mvp_votes,
        }


# ============================================================================
# StatsTracker Class
# ============================================================================

class StatsTracker:
    """Tracks statistics for all players across multiple games."""

    def __init__(self):
        self.players: Dict[str, PlayerStats] = {}
        self.game_count = 0

    def get_player(self, user_id: str) -> PlayerStats:
        """Get or create a player's stats."""
        if user_id not in self.players:
            self.players[user_id] = PlayerStats(user_id)
        return self.players[user_id]

    def process_game(
        self,
        team1: List[str],
        team2: List[str],
        team1_score: int,
        team2_score: int,
        mvp: Union[str, List[str], None] = None,
    ) -> int:
        """
        Process a single game and update all relevant statistics.

        The team's score is credited to every member; there is no per-player
        goal tracking.

        Returns:
            Winner indicator (1, 2, or -1 for draw)
        """
        self.game_count += 1
        winner = calculate_winner(team1_score, team2_score)

        for team_number, team, scored, conceded in (
            (1, team1, team1_score, team2_score),
            (2, team2, team2_score, team1_score),
        ):
            for user_id in team:
                player = self.get_player(user_id)
                player.game_count += 1
                player.goals_for += scored
                player.goals_against += conceded
                if winner == -1:
                    player.draw_count += 1
                elif winner == team_number:
                    player.win_count += 1
                else:
                    player.loss_count += 1

        for user_id in mvp_ids(mvp):
            if user_id in self.players:
                self.players[user_id].mvp_awards += 1

        return winner

    def record_mvp_votes(self, voted_for_ids: Iterable[str]) -> None:
        """Count ballots received by tracked players."""
        for user_id in voted_for_ids:
            if user_id in self.players:
                self.players[user_id].mvp_votes += 1


# ============================================================================
# Leaderboards
# ============================================================================

def top_winners(players: List[PlayerStats]) -> List[PlayerStats]:
    """Most wins first."""
    return sorted(players, key=lambda p: -p.win_count)


def best_win_rate(players: List[PlayerStats], min_games: int = MIN_GAMES_FOR_WIN_RATE) -> List[PlayerStats]:
    """Win rate, then MVP awards, then MVP votes, then goal difference. Needs min_games."""
    eligible = [p for p in players if p.game_count >= min_games]
    return sorted(
        eligible,
        key=lambda p: (-p.win_rate, -p.mvp_awards, -p.mvp_votes, -p.goal_difference),
    )


def detailed_table(players: List[PlayerStats]) -> List[PlayerStats]:
    """Wins, then win rate, then MVP awards, then MVP votes, then goal difference."""
    return sorted(
        players,
        key=lambda p: (-p.win_count, -p.win_rate, -p.mvp_awards, -p.mvp_votes, -p.goal_difference),
    )


def mvp_awards_leaderboard(players: List[PlayerStats]) -> List[PlayerStats]:
    return sorted(
        [p for p in players if p.mvp_awards > 0],
        key=lambda p: (-p.mvp_awards, -p.mvp_votes),
    )


def mvp_votes_leaderboard(players: List[PlayerStats]) -> List[PlayerStats]:
    return sorted(
        [p for p in players if p.mvp_votes > 0],
        key=lambda p: (-p.mvp_votes, -p.mvp_awards),
    )


def hall_of_shame(active_user_ids: List[str], games: List[Dict]) -> List[Dict]:
    """
    Absences of active players from the games in scope.

    Args:
        active_user_ids: Whitelisted, non-admin users
        games: Completed games in scope with teams, as dicts

    Returns:
        Rows with attended/absences, most absences first, only users with at least one
    """
    total = len(games)
    rows = []
    for user_id in active_user_ids:
        attended = sum(
            1
            for game in games
            if user_id in (game["teams"].get("team1", []) + game["teams"].get("team2", []))
        )
        absences = total - attended
        if absences > 0:
            rows.append({
                "user_id": user_id,
                "attended": attended,
                "absences": absences,
                "total_games": total,
            })
    return sorted(rows, key=lambda r: -r["absences"])


# ============================================================================
# Database access
# ============================================================================

async def _completed_games(session: AsyncSession, quarter: Optional[str]) -> List[Game]:
    query = select(Game).where(Game.status == GameStatus.COMPLETED).order_by(Game.date, Game.id)
    if quarter:
        start, end = quarter_bounds(quarter)
        query = query.where(Game.date >= start, Game.date <= end)
    result = await session.execute(query)
    return list(result.scalars().all())


async def _ranked_games(session: AsyncSession, quarter: Optional[str]) -> List[Game]:
    return [g for g in await _completed_games(session, quarter) if is_ranked(g)]


async def build_tracker(session: AsyncSession, quarter: Optional[str] = None):
    """
    Run every ranked game in scope through a StatsTracker.

    Only ballots of games in scope count toward MVP votes.

    Returns:
        Tuple of (tracker, games)
    """
    games = await _ranked_games(session, quarter)
    tracker = StatsTracker()
    for game in games:
        tracker.process_game(
            game.teams["team1"],
            game.teams["team2"],
            game.result["team1_score"],
            game.result["team2_score"],
            game.result.get("mvp"),
        )

    if games:
        result = await session.execute(
            select(MvpVote.voted_for_id).where(MvpVote.game_id.in_([g.id for g in games]))
        )
        tracker.record_mvp_votes(result.scalars().all())
    return tracker, games


def _with_names(rows: List[Dict], users: Dict[str, Dict]) -> List[Dict]:
    named = []
    for row in rows:
        user = users.get(row["user_id"])
        named.append({**row, "name": user_service.display_name(user) if user else row["user_id"]})
    return named


async def compute_rankings(session: AsyncSession, quarter: Optional[str] = None) -> Dict:
    """
    Compute every leaderboard for a quarter ("YYYY-Qn") or for all time.

    Raises:
        ValueError: If the quarter is malformed
    """
    if quarter:
        quarter_bounds(quarter)  # validates

    tracker, games = await build_tracker(session, quarter)
    players = sorted(tracker.players.values(), key=lambda p: p.user_id)
    active = await user_service.get_active_players(session)
    users = await user_service.get_users_by_ids(session, list(tracker.players.keys()))
    users.update({u["id"]: u for u in active})

    def rows(ranked: List[PlayerStats]) -> List[Dict]:
        return _with_names([p.to_dict() for p in ranked], users)

    # Attendance counts every completed game with teams, scored or not
    played = [g for g in await _completed_games(session, quarter) if has_teams(g)]
    game_dicts = [{"id": g.id, "teams": g.teams} for g in played]
    logger.info(f"Computed rankings for {quarter or 'all time'} over {len(games)} game(s)")
    return {
        "quarter": quarter,
        "total_games": len(games),
        "top_winners": rows(top_winners(players)),
        "best_win_rate": rows(best_win_rate(players)),
        "detailed": rows(detailed_table(players)),
        "mvp_awards": rows(mvp_awards_leaderboard(players)),
        "mvp_votes": rows(mvp_votes_leaderboard(players)),
        "hall_of_shame": _with_names(hall_of_shame([u["id"] for u in active], game_dicts), users),
    }


async def get_player_stats(session: AsyncSession, user_id: str, quarter: Optional[str] = None) -> Dict:
    """Statistics of one player (zeros when they have not played)."""
    tracker, games = await build_tracker(session, quarter)
    stats = tracker.players.get(user_id) or PlayerStats(user_id)
    return {**stats.to_dict(), "quarter": quarter, "total_games": len(games)}


async def list_quarters(session: AsyncSession) -> List[str]:
    """Quarters that contain ranked games, newest first."""
    games = await _ranked_games(session, None)
    return sorted({get_quarter(g.date) for g in games}, reverse=True)
