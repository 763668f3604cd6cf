"""
CreatorDailyStat — per (creator, day) rollup of finalized stream sessions.

A materialized view, not a source of truth: every value can be recomputed
from stream_sessions. Written only by the rollup job (upsert by the unique
key) and by the offline data-quality repair.

Windows are anchored on the calendar day in the system rollup timezone:
  *_day    — sessions whose ended_at falls on `day`
  *_week   — the 7 days ending on `day` (inclusive)
  *_month  — the 30 days ending on `day` (inclusive)
"""
from datetime import datetime, date
from sqlalchemy import Integer, Float, Date, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from watchtime.db.base import Base
from watchtime.db.types import UTCDateTime


class CreatorDailyStat(Base):
    __tablename__ = "creator_daily_stats"
    __table_args__ = (
        UniqueConstraint("creator_id", "day", name="uq_daily_stat_creator_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    creator_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("creators.id"), nullable=False, index=True
    )
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    hours_watched_day: Mapped[float | None] = mapped_column(Float, nullable=True)
    hours_watched_week: Mapped[float | None] = mapped_column(Float, nullable=True)
    hours_watched_month: Mapped[float | None] = mapped_column(Float, nullable=True)
    peak_viewers_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    avg_viewers_day: Mapped[float | None] = mapped_column(Float, nullable=True)
    streams_count_day: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
