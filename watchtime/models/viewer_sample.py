"""
ViewerSample — one viewer-count observation of an open session.

Insert-only. (session_id, recorded_at) is unique so re-running a poll cycle
with the same timestamp cannot double-count.
"""
from datetime import datetime
from sqlalchemy import Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from watchtime.db.base import Base
from watchtime.db.types import UTCDateTime


class ViewerSample(Base):
    __tablename__ = "viewer_samples"
    __table_args__ = (
        UniqueConstraint("session_id", "recorded_at", name="uq_sample_session_recorded_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stream_sessions.id"), nullable=False, index=True
    )
    viewer_count: Mapped[int] = mapped_column(Integer, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    game_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
