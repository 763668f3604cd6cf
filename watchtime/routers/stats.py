"""
Creator statistics router.

GET /creators/review             — creators flagged after repeated Unknown verdicts
GET /creators/{id}/stats         — daily rollup rows for the last N days
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from watchtime.core.config import settings
from watchtime.db.base import get_db
from watchtime.schemas.stats import (
    CreatorStatsResponse,
    DailyStatResponse,
    ReviewItemResponse,
    ReviewListResponse,
)
from watchtime.services.reporting import get_daily_stats, list_review_creators
from watchtime.services.rollup import today_in

router = APIRouter(prefix="/creators", tags=["creators"])


@router.get(
    "/review",
    response_model=ReviewListResponse,
    summary="Creators flagged for manual review",
)
def review_list(db: Session = Depends(get_db)):
    """
    A creator is flagged once its lookups have come back Unknown for
    `UNKNOWN_STREAK_REVIEW_THRESHOLD` consecutive cycles. The flag clears on
    the next Live or NotLive verdict. Flagging never closes a session.
    """
    items = list_review_creators(db)
    return ReviewListResponse(
        total=len(items),
        items=[ReviewItemResponse.model_validate(s) for s in items],
    )


@router.get(
    "/{creator_id}/stats",
    response_model=CreatorStatsResponse,
    summary="Daily hours-watched rollups for one creator",
)
def creator_stats(
    creator_id: int,
    days: int = Query(default=30, ge=1, le=366, description="Number of days, ending on `until`."),
    until: Optional[date] = Query(
        default=None,
        description="Last day (inclusive). Defaults to today in the rollup timezone.",
        examples=["2026-10-18"],
    ),
    db: Session = Depends(get_db),
):
    end = until or today_in(settings.rollup_tz)
    rows = get_daily_stats(db, creator_id=creator_id, days=days, until=end)
    return CreatorStatsResponse(
        creator_id=creator_id,
        days=days,
        items=[DailyStatResponse.model_validate(r) for r in rows],
    )
