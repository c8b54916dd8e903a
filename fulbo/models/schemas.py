"""
Pydantic models for API request/response validation.
"""

from datetime import date
from typing import Optional, List, Literal, Union
from pydantic import BaseModel, Field, ConfigDict


# ============================================================================
# Users
# ============================================================================


class UserResponse(BaseModel):
    """User profile."""

    model_config = ConfigDict(from_attributes=True)
    id: str
    email: str
    name: str
    nickname: Optional[str] = None
    image_url: Optional[str] = None
    is_admin: bool
    is_whitelisted: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class NicknameUpdateRequest(BaseModel):
    """Self-service nickname edit. Empty clears it."""

    nickname: Optional[str] = None


class AdminFlagRequest(BaseModel):
    is_admin: bool


class WhitelistRequest(BaseModel):
    is_whitelisted: bool


# ============================================================================
# Availability
# ============================================================================


class AvailabilityRequest(BaseModel):
    """A user's vote for a month."""

    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000)
    available_sundays: List[int] = Field(default_factory=list)
    cannot_play_any_day: bool = False


class UnvoteRequest(BaseModel):
    """Days to remove from a user's vote."""

    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000)
    days: List[int]


class AvailabilityResponse(BaseModel):
    user_id: str
    month: int
    year: int
    available_sundays: List[int]
    cannot_play_any_day: bool
    has_voted: bool
    updated_at: Optional[str] = None


class VotingStatusResponse(BaseModel):
    has_voted: bool
    cannot_play_any_day: bool


class SundaySummary(BaseModel):
    day: int
    voters: List[str]
    count: int
    blocked: bool


class MonthSummaryResponse(BaseModel):
    """Vote counts per Sunday."""

    month: int
    year: int
    sundays: List[SundaySummary]
    cannot_play: List[str]
    pending_count: int


class ActiveMonthRequest(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000)


class ActiveMonthResponse(BaseModel):
    month: int
    year: int


class VotingReminderRequest(BaseModel):
    """Month to remind about. Defaults to the active month."""

    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = Field(default=None, ge=2000)


# ============================================================================
# Games
# ============================================================================


class ReservationInfo(BaseModel):
    """Venue booking details for a confirmed game."""

    location: Optional[str] = None
    time: Optional[str] = None
    cost: Optional[float] = None
    reserved_by: Optional[str] = None
    maps_link: Optional[str] = None
    payment_alias: Optional[str] = None


class GameCreateRequest(BaseModel):
    """Manual game creation by an admin."""

    date: date
    participants: Optional[List[str]] = None
    custom_time: Optional[str] = None


class GameUpdateRequest(BaseModel):
    """
    Admin edit of a game.

    clear_reservation applies when moving a confirmed game back to scheduled;
    send_mvp_reminder applies when completing.
    """

    status: Optional[Literal["scheduled", "confirmed", "completed", "cancelled"]] = None
    custom_time: Optional[str] = None
    reservation_info: Optional[ReservationInfo] = None
    clear_reservation: bool = False
    send_mvp_reminder: bool = False


class ConfirmGameRequest(BaseModel):
    reservation_info: ReservationInfo


class CompleteGameRequest(BaseModel):
    send_mvp_reminder: bool = False


class RosterActionRequest(BaseModel):
    """Target player of a roster change."""

    user_id: str


class TeamAssignmentRequest(BaseModel):
    user_id: str
    team_number: int = Field(ge=1, le=2)


class ReplaceParticipantRequest(BaseModel):
    """Take remove_user_id out; add_user_id or the head of the waitlist takes the slot."""

    remove_user_id: str
    add_user_id: Optional[str] = None


class SelectedParticipantsRequest(BaseModel):
    """Restrict an email to some participants. None means everybody."""

    selected_participants: Optional[List[str]] = None


class GameResponse(BaseModel):
    """Game with roster."""

    id: int
    date: str
    custom_time: Optional[str] = None
    status: str
    participants: List[str]
    waitlist: List[str]
    teams: Optional[dict] = None
    original_teams: Optional[dict] = None
    reservation_info: Optional[dict] = None
    result: Optional[dict] = None
    admin_notification_sent: bool = False
    admin_notification_timeout: Optional[str] = None
    calendar_event_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    email_sent: Optional[bool] = None


# ============================================================================
# Results and MVP
# ============================================================================


class ResultRequest(BaseModel):
    """Final score. Scores are validated by the service."""

    team1_score: int
    team2_score: int
    notes: Optional[str] = None


class MvpVoteRequest(BaseModel):
    voted_for_id: str


class MvpCandidate(BaseModel):
    user_id: str
    name: str
    votes: int
    percentage: int


class MvpResultsResponse(BaseModel):
    """Tally of a game's MVP ballots."""

    game_id: int
    results: List[MvpCandidate]
    total_votes: int
    total_participants: int
    mvp: Optional[Union[str, List[str]]] = None
    finalized: bool
    non_voters: Optional[List[dict]] = None


# ============================================================================
# Admin notifications
# ============================================================================


class AdminNotificationResponse(BaseModel):
    """Admin notification."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    type: str
    game_id: Optional[int] = None
    month: Optional[int] = None
    year: Optional[int] = None
    message: str
    is_read: bool
    action_required: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AdminNotificationListResponse(BaseModel):
    """Paginated admin notification list response."""

    notifications: List[AdminNotificationResponse]
    total_count: int
    has_more: bool


class AdminNotificationActionRequest(BaseModel):
    """
    Action on the admin notification feed.

    mark_read needs notification_id; confirm_match needs game_id (or a
    notification linked to a game) and reservation_info; create_voting_reminder
    needs month and year.
    """

    action: Literal["mark_read", "confirm_match", "create_voting_reminder"]
    notification_id: Optional[int] = None
    game_id: Optional[int] = None
    reservation_info: Optional[ReservationInfo] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = Field(default=None, ge=2000)


class UnreadCountResponse(BaseModel):
    """Unread notification count response."""

    count: int
