"""
Session finalizer: turn a closed session's samples into summary metrics.

Algorithm
---------
  samples ordered by recorded_at
  < 2 samples : hours_watched = 0, avg_viewers = last count (or 0)
  otherwise   : duration_hours = (last.recorded_at - first.recorded_at) / 3600
                avg_viewers    = mean(viewer_count)
                hours_watched  = avg_viewers * duration_hours

Every poll interval is weighted equally; poll cadence is fixed so the
timing jitter between polls is ignored.

Re-finalizing recomputes from the samples and overwrites. Nothing is
accumulated, so a retried finalization is harmless.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from watchtime.models.stream_session import StreamSession
from watchtime.models.viewer_sample import ViewerSample

logger = logging.getLogger(__name__)


@dataclass
class FinalizedStats:
    session_id: Optional[int]
    sample_count: int
    duration_hours: float
    avg_viewers: float
    peak_viewers: int
    hours_watched: float


def compute_stats(samples: Sequence[tuple[datetime, int]]) -> FinalizedStats:
    """
    Pure computation over (recorded_at, viewer_count) pairs in recorded order.
    Values that are not non-negative integers are ignored.
    """
    points = [(t, c) for t, c in samples if isinstance(c, int) and c >= 0]

    if len(points) < 2:
        last = points[-1][1] if points else 0
        return FinalizedStats(
            session_id=None,
            sample_count=len(points),
            duration_hours=0.0,
            avg_viewers=float(last),
            peak_viewers=last,
            hours_watched=0.0,
        )

    duration_hours = max((points[-1][0] - points[0][0]).total_seconds(), 0.0) / 3600
    avg_viewers = sum(c for _, c in points) / len(points)
    return FinalizedStats(
        session_id=None,
        sample_count=len(points),
        duration_hours=duration_hours,
        avg_viewers=avg_viewers,
        peak_viewers=max(c for _, c in points),
        hours_watched=avg_viewers * duration_hours,
    )


def load_samples(db: Session, session_id: int) -> list[tuple[datetime, int]]:
    rows = (
        db.query(ViewerSample.recorded_at, ViewerSample.viewer_count)
        .filter(ViewerSample.session_id == session_id)
        .order_by(ViewerSample.recorded_at.asc())
        .all()
    )
    return [(r.recorded_at, r.viewer_count) for r in rows]


def finalize_session(
    db: Session,
    session: StreamSession,
    ended_at: Optional[datetime] = None,
) -> FinalizedStats:
    """
    Close `session` and write its summary metrics. Flushes, does not commit.

    ended_at: the poll timestamp at which the end was detected. When omitted
    (re-finalization, repair) the existing ended_at is kept, falling back to
    the last sample and then started_at.
    """
    samples = load_samples(db, session.id)
    stats = compute_stats(samples)
    stats.session_id = session.id

    if ended_at is None:
        ended_at = session.ended_at
    if ended_at is None:
        ended_at = samples[-1][0] if samples else session.started_at

    stats.peak_viewers = max(stats.peak_viewers, session.peak_viewers or 0)

    session.ended_at = ended_at
    session.avg_viewers = stats.avg_viewers
    session.peak_viewers = stats.peak_viewers
    session.hours_watched = stats.hours_watched
    session.sample_count = stats.sample_count
    db.flush()

    logger.info(
        "Finalized session %s (stream %s): %d samples, %.2fh, %.0f avg, %d peak, %.1f hours watched",
        session.id, session.stream_id, stats.sample_count, stats.duration_hours,
        stats.avg_viewers, stats.peak_viewers, stats.hours_watched,
    )
    return stats
