"""
Constants used across the fulbo organizer.
"""

# Roster
ROSTER_SIZE = 10  # players needed for a match
TEAM_SIZE = 5  # players per team

# Availability voting
MAX_MONTHS_AHEAD = 3  # furthest month a user may vote for
GAME_SWEEP_MONTHS_AHEAD = 2  # months after the current one scanned for full Sundays

# Game defaults
DEFAULT_GAME_TIME = "10:00"
GAME_DURATION_HOURS = 1
GAME_TIMEZONE = "America/Argentina/Buenos_Aires"

# Admin match_ready notifications are not repeated within this window
ADMIN_NOTIFICATION_COOLDOWN_HOURS = 24

# Rankings
MIN_GAMES_FOR_WIN_RATE = 3

# Settings keys
SETTING_CURRENT_MONTH = "current_month"
SETTING_CURRENT_YEAR = "current_year"
