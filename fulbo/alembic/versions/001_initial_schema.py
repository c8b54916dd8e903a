"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-03-01 10:00:00.000000

Initial schema: users, monthly_availability, reminder_status, games,
mvp_votes, mvp_vote_status, admin_notifications, settings.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
GAME_STATUS = sa.Enum("scheduled", "confirmed", "completed", "cancelled", name="game_status")


def _timestamps(*names):
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True)
        for name in names
    ]


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("nickname", sa.String(30), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_whitelisted", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps("created_at", "updated_at"),
    )

    op.create_table(
        "monthly_availability",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("available_sundays", JSON_TYPE, nullable=False),
        sa.Column("cannot_play_any_day", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("has_voted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "month", "year", name="uq_availability_user_month_year"),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_availability_month_range"),
    )
    op.create_index("idx_availability_month_year", "monthly_availability", ["year", "month"])

    op.create_table(
        "reminder_status",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("last_reminder_sent", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps("updated_at"),
        sa.UniqueConstraint("user_id", "month", "year", name="uq_reminder_user_month_year"),
    )

    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("date", sa.Date(), nullable=False, unique=True),
        sa.Column("custom_time", sa.String(5), nullable=True),
        sa.Column("status", GAME_STATUS, nullable=False, server_default="scheduled"),
        sa.Column("participants", JSON_TYPE, nullable=False),
        sa.Column("waitlist", JSON_TYPE, nullable=False),
        sa.Column("teams", JSON_TYPE, nullable=True),
        sa.Column("original_teams", JSON_TYPE, nullable=True),
        sa.Column("reservation_info", JSON_TYPE, nullable=True),
        sa.Column("result", JSON_TYPE, nullable=True),
        sa.Column("admin_notification_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("admin_notification_timeout", sa.DateTime(timezone=True), nullable=True),
        sa.Column("calendar_event_id", sa.String(255), nullable=True),
        *_timestamps("created_at", "updated_at"),
    )
    op.create_index("idx_games_status", "games", ["status"])

    op.create_table(
        "mvp_votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=False),
        sa.Column("voted_for_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        *_timestamps("created_at"),
    )
    op.create_index("idx_mvp_votes_game", "mvp_votes", ["game_id"])

    op.create_table(
        "mvp_vote_status",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=False),
        sa.Column("voter_id", sa.String(128), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("has_voted", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps("voted_at"),
        sa.UniqueConstraint("game_id", "voter_id", name="uq_mvp_vote_status_game_voter"),
    )

    op.create_table(
        "admin_notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=True),
        sa.Column("month", sa.Integer(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("action_required", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps("created_at", "updated_at"),
    )
    op.create_index("idx_admin_notifications_unread", "admin_notifications", ["is_read", "created_at"])

    op.create_table(
        "settings",
        sa.Column("key", sa.String(), primary_key=True),
        sa.Column("value", sa.Text(), nullable=False),
        *_timestamps("updated_at"),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("settings")
    op.drop_index("idx_admin_notifications_unread", table_name="admin_notifications")
    op.drop_table("admin_notifications")
    op.drop_table("mvp_vote_status")
    op.drop_index("idx_mvp_votes_game", table_name="mvp_votes")
    op.drop_table("mvp_votes")
    op.drop_index("idx_games_status", table_name="games")
    op.drop_table("games")
    op.drop_table("reminder_status")
    op.drop_index("idx_availability_month_year", table_name="monthly_availability")
    op.drop_table("monthly_availability")
    op.drop_table("users")
    GAME_STATUS.drop(op.get_bind(), checkfirst=True)
