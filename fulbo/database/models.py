"""
SQLAlchemy ORM models for the fulbo organizer.
"""

import enum
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from fulbo.database.db import Base

# JSONB on postgres, plain JSON on sqlite
JSONType = JSON().with_variant(JSONB(), "postgresql")


class GameStatus(str, enum.Enum):
    """Game lifecycle status."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AdminNotificationType(str, enum.Enum):
    """Admin notification type."""

    MATCH_READY = "match_ready"
    VOTING_REMINDER = "voting_reminder"


class User(Base):
    """Group member. The id is issued by the identity provider."""

    __tablename__ = "users"

    id = Column(String(128), primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    nickname = Column(String(30), nullable=True)
    image_url = Column(String(500), nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_whitelisted = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class MonthlyAvailability(Base):
    """Sundays a user can play in a given month."""

    __tablename__ = "monthly_availability"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    available_sundays = Column(JSONType, nullable=False, default=list)
    cannot_play_any_day = Column(Boolean, default=False, nullable=False)
    has_voted = Column(Boolean, default=False, nullable=False)
    # Doubles as the vote timestamp used to order rosters
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "month", "year", name="uq_availability_user_month_year"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_availability_month_range"),
        Index("idx_availability_month_year", "year", "month"),
    )


class ReminderStatus(Base):
    """Voting reminder bookkeeping per user and month."""

    __tablename__ = "reminder_status"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    last_reminder_sent = Column(DateTime(timezone=True), nullable=True)
    reminder_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "month", "year", name="uq_reminder_user_month_year"),
    )


class Game(Base):
    """A Sunday match and its roster."""

    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, unique=True)
    custom_time = Column(String(5), nullable=True)  # "HH:MM", defaults to DEFAULT_GAME_TIME
    status = Column(
        Enum(GameStatus, values_callable=lambda x: [e.value for e in x], name="game_status"),
        default=GameStatus.SCHEDULED,
        nullable=False,
    )
    participants = Column(JSONType, nullable=False, default=list)  # ordered user ids
    waitlist = Column(JSONType, nullable=False, default=list)  # ordered user ids
    teams = Column(JSONType, nullable=True)  # {"team1": [...], "team2": [...]}
    original_teams = Column(JSONType, nullable=True)  # first generated split
    reservation_info = Column(JSONType, nullable=True)
    result = Column(JSONType, nullable=True)  # team1_score, team2_score, notes, mvp
    admin_notification_sent = Column(Boolean, default=False, nullable=False)
    admin_notification_timeout = Column(DateTime(timezone=True), nullable=True)
    calendar_event_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_games_status", "status"),
    )


class MvpVote(Base):
    """An anonymous MVP ballot. Holds no reference to the voter."""

    __tablename__ = "mvp_votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    voted_for_id = Column(String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_mvp_votes_game", "game_id"),
    )


class MvpVoteStatus(Base):
    """Marks that a voter already cast a ballot for a game."""

    __tablename__ = "mvp_vote_status"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    voter_id = Column(String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    has_voted = Column(Boolean, default=True, nullable=False)
    voted_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("game_id", "voter_id", name="uq_mvp_vote_status_game_voter"),
    )


class AdminNotification(Base):
    """Notification shown on the admin dashboard."""

    __tablename__ = "admin_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(50), nullable=False)  # AdminNotificationType value
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=True)
    month = Column(Integer, nullable=True)
    year = Column(Integer, nullable=True)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    action_required = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_admin_notifications_unread", "is_read", "created_at"),
    )


class Setting(Base):
    """Application configuration."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
