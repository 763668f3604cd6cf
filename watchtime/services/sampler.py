"""
Viewer sampler: append one observation to an open session.

A creator missing from a cycle simply has no sample for that cycle; gaps
are never filled with zeros.
"""
from __future__ import annotations

import enum
import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from watchtime.models.stream_session import StreamSession
from watchtime.models.viewer_sample import ViewerSample
from watchtime.services.platforms.base import Live
from watchtime.services.quality import accept_viewer_count

logger = logging.getLogger(__name__)


class SampleOutcome(str, enum.Enum):
    recorded = "recorded"
    rejected = "rejected"          # viewer count failed the quality check
    duplicate = "duplicate"        # this cycle's timestamp is already stored
    out_of_order = "out_of_order"  # older than the latest stored sample


def _latest_recorded_at(db: Session, session_id: int) -> datetime | None:
    return (
        db.query(func.max(ViewerSample.recorded_at))
        .filter(ViewerSample.session_id == session_id)
        .scalar()
    )


def record_sample(
    db: Session,
    session: StreamSession,
    verdict: Live,
    recorded_at: datetime,
) -> SampleOutcome:
    """Insert one sample and bump peak_viewers. Flushes, does not commit."""
    count = accept_viewer_count(verdict.viewer_count, context=f"session {session.id}")
    if count is None:
        return SampleOutcome.rejected

    latest = _latest_recorded_at(db, session.id)
    if latest is not None:
        if recorded_at == latest:
            return SampleOutcome.duplicate
        if recorded_at < latest:
            logger.warning(
                "Session %s: sample at %s is older than latest %s; dropped",
                session.id, recorded_at.isoformat(), latest.isoformat(),
            )
            return SampleOutcome.out_of_order

    db.add(ViewerSample(
        session_id=session.id,
        viewer_count=count,
        recorded_at=recorded_at,
        game_name=verdict.category,
    ))
    if count > (session.peak_viewers or 0):
        session.peak_viewers = count
    db.flush()
    return SampleOutcome.recorded
