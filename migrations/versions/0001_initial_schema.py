"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

creators (registry, read-only to the engine), stream_sessions, viewer_samples,
creator_daily_stats and creator_poll_state.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    platform_enum = sa.Enum("twitch", "kick", name="platform_enum")
    platform_enum.create(op.get_bind(), checkfirst=True)

    # --- creators ---
    op.create_table(
        "creators",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("platform", sa.Enum(
            "twitch", "kick", name="platform_enum", create_type=False,
        ), nullable=False),
        sa.Column("platform_id", sa.String(128), nullable=False),
        sa.Column("username", sa.String(128), nullable=True),
        sa.Column("display_name", sa.String(256), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("platform", "platform_id", name="uq_creator_platform_id"),
    )
    op.create_index("ix_creators_id", "creators", ["id"])
    op.create_index("ix_creators_platform", "creators", ["platform"])

    # --- stream_sessions ---
    op.create_table(
        "stream_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("creator_id", sa.Integer(), sa.ForeignKey("creators.id"), nullable=False),
        sa.Column("stream_id", sa.String(128), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("title", sa.String(512), nullable=True),
        sa.Column("game_name", sa.String(256), nullable=True),
        sa.Column("peak_viewers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_viewers", sa.Float(), nullable=True),
        sa.Column("hours_watched", sa.Float(), nullable=True),
        sa.Column("sample_count", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("creator_id", "stream_id", name="uq_session_creator_stream"),
    )
    op.create_index("ix_stream_sessions_id", "stream_sessions", ["id"])
    op.create_index("ix_stream_sessions_creator_id", "stream_sessions", ["creator_id"])
    op.create_index("ix_session_ended_at", "stream_sessions", ["ended_at"])
    # At most one open session per creator.
    op.create_index(
        "uq_session_open_per_creator",
        "stream_sessions",
        ["creator_id"],
        unique=True,
        postgresql_where=sa.text("ended_at IS NULL"),
        sqlite_where=sa.text("ended_at IS NULL"),
    )

    # --- viewer_samples ---
    op.create_table(
        "viewer_samples",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("stream_sessions.id"), nullable=False),
        sa.Column("viewer_count", sa.Integer(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("game_name", sa.String(256), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "recorded_at", name="uq_sample_session_recorded_at"),
    )
    op.create_index("ix_viewer_samples_id", "viewer_samples", ["id"])
    op.create_index("ix_viewer_samples_session_id", "viewer_samples", ["session_id"])

    # --- creator_daily_stats ---
    op.create_table(
        "creator_daily_stats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("creator_id", sa.Integer(), sa.ForeignKey("creators.id"), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("hours_watched_day", sa.Float(), nullable=True),
        sa.Column("hours_watched_week", sa.Float(), nullable=True),
        sa.Column("hours_watched_month", sa.Float(), nullable=True),
        sa.Column("peak_viewers_day", sa.Integer(), nullable=True),
        sa.Column("avg_viewers_day", sa.Float(), nullable=True),
        sa.Column("streams_count_day", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("creator_id", "day", name="uq_daily_stat_creator_day"),
    )
    op.create_index("ix_creator_daily_stats_id", "creator_daily_stats", ["id"])
    op.create_index("ix_creator_daily_stats_creator_id", "creator_daily_stats", ["creator_id"])
    op.create_index("ix_creator_daily_stats_day", "creator_daily_stats", ["day"])

    # --- creator_poll_state ---
    op.create_table(
        "creator_poll_state",
        sa.Column("creator_id", sa.Integer(), sa.ForeignKey("creators.id"), nullable=False),
        sa.Column("last_verdict", sa.String(16), nullable=True),
        sa.Column("last_reason", sa.String(256), nullable=True),
        sa.Column("consecutive_unknown", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("needs_review", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_polled_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("creator_id"),
    )


def downgrade() -> None:
    op.drop_table("creator_poll_state")
    op.drop_index("ix_creator_daily_stats_day", table_name="creator_daily_stats")
    op.drop_index("ix_creator_daily_stats_creator_id", table_name="creator_daily_stats")
    op.drop_index("ix_creator_daily_stats_id", table_name="creator_daily_stats")
    op.drop_table("creator_daily_stats")
    op.drop_index("ix_viewer_samples_session_id", table_name="viewer_samples")
    op.drop_index("ix_viewer_samples_id", table_name="viewer_samples")
    op.drop_table("viewer_samples")
    op.drop_index("uq_session_open_per_creator", table_name="stream_sessions")
    op.drop_index("ix_session_ended_at", table_name="stream_sessions")
    op.drop_index("ix_stream_sessions_creator_id", table_name="stream_sessions")
    op.drop_index("ix_stream_sessions_id", table_name="stream_sessions")
    op.drop_table("stream_sessions")
    op.drop_index("ix_creators_platform", table_name="creators")
    op.drop_index("ix_creators_id", table_name="creators")
    op.drop_table("creators")
    sa.Enum(name="platform_enum").drop(op.get_bind(), checkfirst=True)
