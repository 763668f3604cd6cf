"""
CreatorPollState — per-creator bookkeeping of poll outcomes.

Tracks consecutive Unknown verdicts so creators whose lookups keep failing
(deleted account, renamed slug, persistent rate limiting) surface for manual
review. Never used to close a session.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from watchtime.db.base import Base
from watchtime.db.types import UTCDateTime


class CreatorPollState(Base):
    __tablename__ = "creator_poll_state"

    creator_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("creators.id"), primary_key=True
    )
    last_verdict: Mapped[str | None] = mapped_column(
        String(16), nullable=True, comment='"live" | "not_live" | "unknown"'
    )
    last_reason: Mapped[str | None] = mapped_column(String(256), nullable=True)
    consecutive_unknown: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_polled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
