"""
StreamSession — one broadcast attempt by one creator.

Natural key: (creator_id, stream_id). stream_id is the platform-assigned
broadcast id and is stable for the lifetime of one broadcast.

ended_at IS NULL marks the creator's open session; the partial unique index
keeps it to at most one per creator.

avg_viewers, hours_watched and sample_count are written only by the
finalizer. peak_viewers is bumped by the sampler while the session is open.
"""
from datetime import datetime
from sqlalchemy import (
    Integer, String, Float, ForeignKey, Index, UniqueConstraint, func, text,
)
from sqlalchemy.orm import Mapped, mapped_column

from watchtime.db.base import Base
from watchtime.db.types import UTCDateTime


class StreamSession(Base):
    __tablename__ = "stream_sessions"
    __table_args__ = (
        UniqueConstraint("creator_id", "stream_id", name="uq_session_creator_stream"),
        Index(
            "uq_session_open_per_creator",
            "creator_id",
            unique=True,
            postgresql_where=text("ended_at IS NULL"),
            sqlite_where=text("ended_at IS NULL"),
        ),
        Index("ix_session_ended_at", "ended_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    creator_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("creators.id"), nullable=False, index=True
    )
    stream_id: Mapped[str] = mapped_column(String(128), nullable=False)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    title: Mapped[str | None] = mapped_column(String(512), nullable=True)
    game_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    peak_viewers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_viewers: Mapped[float | None] = mapped_column(Float, nullable=True)
    hours_watched: Mapped[float | None] = mapped_column(Float, nullable=True)
    sample_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @property
    def is_open(self) -> bool:
        return self.ended_at is None
