"""
Offline data-quality repair.

Corrupted history from the old client-error path shows up as NULL or 0 where
a real value belongs. Normal polling never "fixes" stored rows; these passes
are run by an operator, are idempotent, and only ever propagate values that
were already observed.

repair_daily_stats(db, fields, dry_run, tz)
    For each creator, walk creator_daily_stats by day and rewrite corrupted
    values of each field to the nearest preceding good value of that field
    (or the nearest following one when none precedes). Creators with no good
    value for a field are left untouched.

    A NULL is always corrupted: the rollup never writes one. A 0 is only
    corrupted when finalized sessions with a positive value for that metric
    ended inside the row's window; the rollup writes a genuine 0 for an idle
    window, and that 0 is kept (and may itself be carried forward).

repair_sessions(db, dry_run)
    Closed sessions that never got metrics (avg_viewers or hours_watched NULL)
    are re-finalized from their own samples.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, tzinfo
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from watchtime.core.config import settings
from watchtime.core.errors import UnknownRepairFieldError
from watchtime.models.creator_stat import CreatorDailyStat
from watchtime.models.stream_session import StreamSession
from watchtime.services.finalizer import finalize_session
from watchtime.services.quality import carry_forward
from watchtime.services.rollup import window_bounds

logger = logging.getLogger(__name__)

# field -> (rollup window, session column whose positive values prove activity)
REPAIRABLE = {
    "hours_watched_day": ("day", StreamSession.hours_watched),
    "hours_watched_week": ("week", StreamSession.hours_watched),
    "hours_watched_month": ("month", StreamSession.hours_watched),
    "peak_viewers_day": ("day", StreamSession.peak_viewers),
    "avg_viewers_day": ("day", StreamSession.avg_viewers),
}

REPAIRABLE_FIELDS = list(REPAIRABLE)


@dataclass
class FieldChange:
    creator_id: int
    day: date
    field: str
    old_value: Optional[float]
    new_value: float


@dataclass
class RepairReport:
    dry_run: bool
    rows_scanned: int = 0
    bad_values: int = 0
    fixed_values: int = 0
    unrecoverable_values: int = 0
    sessions_refinalized: int = 0
    changes: list[FieldChange] = field(default_factory=list)


def _validate_fields(fields: list[str]) -> None:
    for name in fields:
        if name not in REPAIRABLE_FIELDS:
            raise UnknownRepairFieldError(name, REPAIRABLE_FIELDS)


def _window_had_activity(
    db: Session,
    creator_id: int,
    day: date,
    name: str,
    tz: tzinfo,
) -> bool:
    """True when a finalized session with a positive value for `name` ended in the row's window."""
    window, column = REPAIRABLE[name]
    start, end = window_bounds(day, tz)[window]
    hit = (
        db.query(StreamSession.id)
        .filter(
            StreamSession.creator_id == creator_id,
            StreamSession.ended_at.is_not(None),
            StreamSession.ended_at >= start,
            StreamSession.ended_at < end,
            column > 0,
        )
        .first()
    )
    return hit is not None


def _is_corrupted(db: Session, row: CreatorDailyStat, name: str, tz: tzinfo) -> bool:
    value = getattr(row, name)
    if value is None:
        return True
    if value == 0:
        return _window_had_activity(db, row.creator_id, row.day, name, tz)
    return False


def repair_daily_stats(
    db: Session,
    fields: list[str],
    dry_run: bool = False,
    report: Optional[RepairReport] = None,
    tz: Optional[tzinfo] = None,
) -> RepairReport:
    """Carry the last good value forward over corrupted rows. Commits unless dry_run."""
    _validate_fields(fields)
    zone = tz or settings.rollup_tz
    report = report or RepairReport(dry_run=dry_run)

    creator_ids = [
        row.creator_id
        for row in db.query(CreatorDailyStat.creator_id).distinct().order_by(CreatorDailyStat.creator_id)
    ]

    for creator_id in creator_ids:
        rows = (
            db.query(CreatorDailyStat)
            .filter(CreatorDailyStat.creator_id == creator_id)
            .order_by(CreatorDailyStat.day.asc())
            .all()
        )
        report.rows_scanned += len(rows)

        for name in fields:
            corrupted = [_is_corrupted(db, r, name, zone) for r in rows]
            bad = sum(corrupted)
            if not bad:
                continue
            report.bad_values += bad

            # Badness depends on the row, not only the value, so run the
            # selection over row indexes and map back.
            sources = carry_forward(range(len(rows)), is_bad=lambda i: corrupted[i])
            report.unrecoverable_values += bad - len(sources)
            if not sources:
                logger.warning(
                    "Creator %s: %d bad %s value(s), no good value to carry forward; skipped",
                    creator_id, bad, name,
                )
                continue

            for index, source in sources.items():
                row = rows[index]
                new_value = getattr(rows[source], name)
                report.changes.append(FieldChange(
                    creator_id=creator_id,
                    day=row.day,
                    field=name,
                    old_value=getattr(row, name),
                    new_value=new_value,
                ))
                if not dry_run:
                    setattr(row, name, new_value)
                report.fixed_values += 1
            logger.info(
                "Creator %s: %s %d/%d bad %s value(s)",
                creator_id, "would fix" if dry_run else "fixed", len(sources), bad, name,
            )

    if dry_run:
        db.rollback()
    else:
        db.commit()
    return report


def repair_sessions(
    db: Session,
    dry_run: bool = False,
    report: Optional[RepairReport] = None,
) -> RepairReport:
    """Re-finalize closed sessions with missing metrics. Commits unless dry_run."""
    report = report or RepairReport(dry_run=dry_run)

    sessions = (
        db.query(StreamSession)
        .filter(
            StreamSession.ended_at.is_not(None),
            or_(StreamSession.avg_viewers.is_(None), StreamSession.hours_watched.is_(None)),
        )
        .order_by(StreamSession.id)
        .all()
    )
    for session in sessions:
        if not dry_run:
            finalize_session(db, session)
        report.sessions_refinalized += 1

    if sessions:
        logger.info(
            "%s %d closed session(s) without metrics",
            "Would re-finalize" if dry_run else "Re-finalized", len(sessions),
        )

    if dry_run:
        db.rollback()
    else:
        db.commit()
    return report


def run_repair(
    db: Session,
    fields: list[str],
    dry_run: bool = False,
    tz: Optional[tzinfo] = None,
) -> RepairReport:
    """Both passes: sessions first, so the stats pass sees final session values."""
    _validate_fields(fields)
    report = RepairReport(dry_run=dry_run)
    repair_sessions(db, dry_run=dry_run, report=report)
    repair_daily_stats(db, fields, dry_run=dry_run, report=report, tz=tz)
    return report
