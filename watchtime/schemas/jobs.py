"""
Job trigger request / response schemas.

POST /jobs/poll/{platform}  → PollCycleResponse
POST /jobs/rollup           → RollupRequest → RollupResponse
POST /jobs/repair           → RepairRequest → RepairResponse
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class PollCycleResponse(BaseModel):
    platform: str
    polled_at: datetime
    creators: int
    live: int
    unknown: int
    failed_batches: int
    sessions_started: int
    sessions_continued: int
    sessions_ended: int
    samples_recorded: int
    samples_rejected: int
    skipped_writes: int
    flagged_for_review: int


class RollupRequest(BaseModel):
    day: Optional[date] = Field(
        default=None,
        description="Calendar day to roll up. Defaults to today in the rollup timezone.",
        examples=["2026-10-18"],
    )
    platform: Optional[str] = Field(
        default=None,
        description="Restrict to one platform. Omit for all creators.",
        examples=["twitch"],
    )


class RollupResponse(BaseModel):
    day: date
    timezone: str
    creators: int
    rows_written: int
    creators_with_hours: int


class RepairRequest(BaseModel):
    dry_run: bool = Field(default=True, description="Report what would change without writing.")
    fields: Optional[list[str]] = Field(
        default=None,
        description="creator_daily_stats columns to repair. Defaults to QUALITY_REPAIR_FIELDS.",
        examples=[["hours_watched_week", "hours_watched_month"]],
    )


class RepairChangeResponse(BaseModel):
    creator_id: int
    day: date
    field: str
    old_value: Optional[float] = None
    new_value: float


class RepairResponse(BaseModel):
    dry_run: bool
    rows_scanned: int
    bad_values: int
    fixed_values: int
    unrecoverable_values: int
    sessions_refinalized: int
    changes: list[RepairChangeResponse]
