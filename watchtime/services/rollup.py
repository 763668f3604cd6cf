"""
Rollup aggregator: finalized sessions -> creator_daily_stats.

Windows
-------
All windows are anchored on a calendar day `day` in the single system
timezone (settings.ROLLUP_TIMEZONE), and select sessions by ended_at:

  day    [midnight(day),      midnight(day + 1))
  week   [midnight(day - 6),  midnight(day + 1))
  month  [midnight(day - 29), midnight(day + 1))

Per window: sum(hours_watched). The day window also gets max(peak_viewers),
the per-session mean of avg_viewers and the session count.

Open sessions (ended_at IS NULL) contribute nothing; they are counted on the
day they end.

Idempotency
-----------
The row for (creator, day) is recomputed from scratch and upserted, so
running the rollup twice over the same sessions writes identical values.
It does not depend on when (or whether) the poller last ran.

Public API
----------
aggregate_sessions(rows)                  -> WindowStats   (pure)
window_bounds(day, tz)                    -> dict[str, (start, end)]
compute_creator_stats(db, creator_id, day, tz) -> DailyRollup
run_rollup(db, day, platform, tz)         -> RollupResult
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from watchtime.core.config import settings
from watchtime.core.errors import InvalidRollupDayError
from watchtime.models.creator_stat import CreatorDailyStat
from watchtime.models.stream_session import StreamSession
from watchtime.services.registry import list_creators

logger = logging.getLogger(__name__)

WINDOW_DAYS = {"day": 1, "week": 7, "month": 30}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class WindowStats:
    hours_watched: float = 0.0
    peak_viewers: int = 0
    avg_viewers: float = 0.0
    session_count: int = 0


@dataclass
class DailyRollup:
    creator_id: int
    day: date
    day_stats: WindowStats
    week_stats: WindowStats
    month_stats: WindowStats


@dataclass
class RollupResult:
    day: date
    timezone: str
    creators: int = 0
    rows_written: int = 0
    creators_with_hours: int = 0
    rollups: list[DailyRollup] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def aggregate_sessions(rows: Iterable[tuple[Optional[float], Optional[int], Optional[float]]]) -> WindowStats:
    """Aggregate (hours_watched, peak_viewers, avg_viewers) tuples of finalized sessions."""
    rows = list(rows)
    if not rows:
        return WindowStats()
    return WindowStats(
        hours_watched=sum(h or 0.0 for h, _, _ in rows),
        peak_viewers=max(p or 0 for _, p, _ in rows),
        avg_viewers=sum(a or 0.0 for _, _, a in rows) / len(rows),
        session_count=len(rows),
    )


def local_midnight(day: date, tz: tzinfo) -> datetime:
    """Start of `day` in `tz`, as an aware UTC datetime."""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def window_bounds(day: date, tz: tzinfo) -> dict[str, tuple[datetime, datetime]]:
    end = local_midnight(day + timedelta(days=1), tz)
    return {
        name: (local_midnight(day - timedelta(days=span - 1), tz), end)
        for name, span in WINDOW_DAYS.items()
    }


# ---------------------------------------------------------------------------
# Core: one creator
# ---------------------------------------------------------------------------

def _finalized_in(db: Session, creator_id: int, start: datetime, end: datetime):
    return (
        db.query(StreamSession.hours_watched, StreamSession.peak_viewers, StreamSession.avg_viewers)
        .filter(
            StreamSession.creator_id == creator_id,
            StreamSession.ended_at.is_not(None),
            StreamSession.ended_at >= start,
            StreamSession.ended_at < end,
        )
        .all()
    )


def compute_creator_stats(db: Session, creator_id: int, day: date, tz: tzinfo) -> DailyRollup:
    """Read-only: the three windows for one creator."""
    bounds = window_bounds(day, tz)
    stats = {
        name: aggregate_sessions(
            (r.hours_watched, r.peak_viewers, r.avg_viewers)
            for r in _finalized_in(db, creator_id, start, end)
        )
        for name, (start, end) in bounds.items()
    }
    return DailyRollup(
        creator_id=creator_id,
        day=day,
        day_stats=stats["day"],
        week_stats=stats["week"],
        month_stats=stats["month"],
    )


def _find_daily_stat(db: Session, creator_id: int, day: date) -> Optional[CreatorDailyStat]:
    return (
        db.query(CreatorDailyStat)
        .filter(CreatorDailyStat.creator_id == creator_id, CreatorDailyStat.day == day)
        .first()
    )


def _apply(row: CreatorDailyStat, rollup: DailyRollup) -> None:
    row.hours_watched_day = rollup.day_stats.hours_watched
    row.hours_watched_week = rollup.week_stats.hours_watched
    row.hours_watched_month = rollup.month_stats.hours_watched
    row.peak_viewers_day = rollup.day_stats.peak_viewers
    row.avg_viewers_day = rollup.day_stats.avg_viewers
    row.streams_count_day = rollup.day_stats.session_count


def _upsert_daily_stat(db: Session, rollup: DailyRollup) -> CreatorDailyStat:
    """
    Persist or refresh the (creator, day) row. Flushes, does not commit.

    The insert runs in its own savepoint: an overlapping rollup may insert
    the same row between our lookup and our flush, in which case only the
    savepoint is rolled back and the other run's row is updated instead.
    """
    row = _find_daily_stat(db, rollup.creator_id, rollup.day)
    if row is None:
        try:
            with db.begin_nested():
                row = CreatorDailyStat(creator_id=rollup.creator_id, day=rollup.day)
                _apply(row, rollup)
                db.add(row)
                db.flush()
            return row
        except IntegrityError:
            # Another rollup inserted the row first; update theirs.
            logger.info(
                "Creator %s: daily stat for %s inserted concurrently; updating it",
                rollup.creator_id, rollup.day,
            )
            row = _find_daily_stat(db, rollup.creator_id, rollup.day)
            if row is None:
                raise

    _apply(row, rollup)
    db.flush()
    return row


# ---------------------------------------------------------------------------
# Public: main entry point
# ---------------------------------------------------------------------------

def today_in(tz: tzinfo) -> date:
    return datetime.now(tz=tz).date()


def run_rollup(
    db: Session,
    day: Optional[date] = None,
    platform: Optional[str] = None,
    tz: Optional[tzinfo] = None,
) -> RollupResult:
    """
    Recompute and upsert creator_daily_stats for `day` (default: today in the
    rollup timezone) for every registered creator, optionally one platform.
    Commits once at the end.
    """
    zone = tz or settings.rollup_tz
    today = today_in(zone)
    target = day or today
    if target > today:
        raise InvalidRollupDayError(target, today)

    result = RollupResult(day=target, timezone=str(zone))
    creators = list_creators(db, platform)
    result.creators = len(creators)

    for creator in creators:
        rollup = compute_creator_stats(db, creator.internal_id, target, zone)
        _upsert_daily_stat(db, rollup)
        result.rollups.append(rollup)
        result.rows_written += 1
        if rollup.month_stats.hours_watched > 0:
            result.creators_with_hours += 1
            logger.debug(
                "%s: %.0f hours watched (30d), %d sessions today",
                creator.label, rollup.month_stats.hours_watched, rollup.day_stats.session_count,
            )

    db.commit()
    logger.info(
        "Rollup for %s (%s): %d rows written, %d creators with 30-day hours",
        target, result.timezone, result.rows_written, result.creators_with_hours,
    )
    return result
