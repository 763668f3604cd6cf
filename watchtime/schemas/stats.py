"""
Creator statistics response schemas.

GET /creators/{id}/stats   → CreatorStatsResponse
GET /creators/review       → ReviewListResponse
"""
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class DailyStatResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: date
    hours_watched_day: Optional[float] = None
    hours_watched_week: Optional[float] = None
    hours_watched_month: Optional[float] = None
    peak_viewers_day: Optional[int] = None
    avg_viewers_day: Optional[float] = None
    streams_count_day: int


class CreatorStatsResponse(BaseModel):
    creator_id: int
    days: int
    items: list[DailyStatResponse]


class ReviewItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    creator_id: int
    consecutive_unknown: int
    last_reason: Optional[str] = None
    last_polled_at: Optional[datetime] = None


class ReviewListResponse(BaseModel):
    total: int
    items: list[ReviewItemResponse]
