"""
Read-side queries behind the HTTP API. No writes.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from watchtime.core.errors import SessionNotFoundError
from watchtime.models.creator_stat import CreatorDailyStat
from watchtime.models.poll_state import CreatorPollState
from watchtime.models.stream_session import StreamSession
from watchtime.models.viewer_sample import ViewerSample


def list_sessions(
    db: Session,
    creator_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[StreamSession]]:
    """Return (total, page) of sessions, newest first. status: "open" | "closed"."""
    q = db.query(StreamSession)
    if creator_id is not None:
        q = q.filter(StreamSession.creator_id == creator_id)
    if status == "open":
        q = q.filter(StreamSession.ended_at.is_(None))
    elif status == "closed":
        q = q.filter(StreamSession.ended_at.is_not(None))
    total = q.count()
    items = (
        q.order_by(StreamSession.started_at.desc(), StreamSession.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items


def get_session(db: Session, session_id: int) -> StreamSession:
    session = db.get(StreamSession, session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


def list_samples(db: Session, session_id: int) -> list[ViewerSample]:
    get_session(db, session_id)
    return (
        db.query(ViewerSample)
        .filter(ViewerSample.session_id == session_id)
        .order_by(ViewerSample.recorded_at.asc())
        .all()
    )


def get_daily_stats(
    db: Session,
    creator_id: int,
    days: int,
    until: date,
) -> list[CreatorDailyStat]:
    """Rows for the `days` calendar days ending on `until`, oldest first."""
    since = until - timedelta(days=days - 1)
    return (
        db.query(CreatorDailyStat)
        .filter(
            CreatorDailyStat.creator_id == creator_id,
            CreatorDailyStat.day >= since,
            CreatorDailyStat.day <= until,
        )
        .order_by(CreatorDailyStat.day.asc())
        .all()
    )


def list_review_creators(db: Session) -> list[CreatorPollState]:
    return (
        db.query(CreatorPollState)
        .filter(CreatorPollState.needs_review.is_(True))
        .order_by(CreatorPollState.consecutive_unknown.desc(), CreatorPollState.creator_id)
        .all()
    )
