"""
Job trigger router — the HTTP face of the scheduled jobs.

POST /jobs/poll/{platform}   — run one polling cycle (every few minutes)
POST /jobs/rollup            — recompute daily stats (once a day)
POST /jobs/repair            — offline data-quality repair (operator)

Every job is idempotent, so overlapping cron triggers are harmless.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from watchtime.core.config import settings
from watchtime.db.base import get_db
from watchtime.schemas.common import ErrorResponse
from watchtime.schemas.jobs import (
    PollCycleResponse,
    RepairChangeResponse,
    RepairRequest,
    RepairResponse,
    RollupRequest,
    RollupResponse,
)
from watchtime.services.platforms import build_client
from watchtime.services.polling_cycle import run_polling_cycle
from watchtime.services.repair import run_repair
from watchtime.services.rollup import run_rollup

router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_client_factory():
    """Dependency so tests can swap in a fake platform client."""
    return lambda platform: build_client(platform, settings)


@router.post(
    "/poll/{platform}",
    response_model=PollCycleResponse,
    summary="Run one polling cycle for a platform",
    responses={422: {"model": ErrorResponse, "description": "Unknown platform or no credentials."}},
)
def poll(
    platform: str,
    db: Session = Depends(get_db),
    client_factory=Depends(get_client_factory),
):
    """
    Poll every registered creator on `platform` once, open / continue / close
    sessions and record one viewer sample per live creator.

    Upstream failures never fail the request: affected creators come back
    in the `unknown` count and are re-evaluated next cycle.
    """
    with client_factory(platform) as client:
        result = run_polling_cycle(db, platform, client, settings=settings)
    return PollCycleResponse(
        platform=result.platform,
        polled_at=result.polled_at,
        creators=result.creators,
        live=result.live,
        unknown=result.unknown,
        failed_batches=result.failed_batches,
        sessions_started=result.sessions_started,
        sessions_continued=result.sessions_continued,
        sessions_ended=result.sessions_ended,
        samples_recorded=result.samples_recorded,
        samples_rejected=result.samples_rejected,
        skipped_writes=result.skipped_writes,
        flagged_for_review=result.flagged_for_review,
    )


@router.post(
    "/rollup",
    response_model=RollupResponse,
    summary="Recompute creator daily stats",
    responses={422: {"model": ErrorResponse, "description": "Day is in the future."}},
)
def rollup(payload: Optional[RollupRequest] = None, db: Session = Depends(get_db)):
    """
    Sum hours watched over the day / 7-day / 30-day windows ending on `day`
    and upsert one `creator_daily_stats` row per creator. Re-running for the
    same day over the same sessions writes identical rows.
    """
    payload = payload or RollupRequest()
    result = run_rollup(db, day=payload.day, platform=payload.platform)
    return RollupResponse(
        day=result.day,
        timezone=result.timezone,
        creators=result.creators,
        rows_written=result.rows_written,
        creators_with_hours=result.creators_with_hours,
    )


@router.post(
    "/repair",
    response_model=RepairResponse,
    summary="Repair sentinel values in stored history",
    responses={422: {"model": ErrorResponse, "description": "Unknown field."}},
)
def repair(payload: Optional[RepairRequest] = None, db: Session = Depends(get_db)):
    """
    Re-finalize closed sessions missing metrics, then carry the last good
    value forward over NULL / 0 rows in `creator_daily_stats`.
    Defaults to a dry run.
    """
    payload = payload or RepairRequest()
    report = run_repair(
        db,
        fields=payload.fields or settings.quality_repair_fields,
        dry_run=payload.dry_run,
    )
    return RepairResponse(
        dry_run=report.dry_run,
        rows_scanned=report.rows_scanned,
        bad_values=report.bad_values,
        fixed_values=report.fixed_values,
        unrecoverable_values=report.unrecoverable_values,
        sessions_refinalized=report.sessions_refinalized,
        changes=[
            RepairChangeResponse(
                creator_id=c.creator_id,
                day=c.day,
                field=c.field,
                old_value=c.old_value,
                new_value=c.new_value,
            )
            for c in report.changes
        ],
    )
