"""
Stream session response schemas.

GET /sessions                  → StreamSessionListResponse
GET /sessions/{id}             → StreamSessionResponse
GET /sessions/{id}/samples     → ViewerSampleListResponse
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class StreamSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    creator_id: int
    stream_id: str = Field(description="Platform-assigned broadcast id.")
    started_at: datetime
    ended_at: Optional[datetime] = Field(default=None, description="Null while the stream is live.")
    title: Optional[str] = None
    game_name: Optional[str] = None
    peak_viewers: int
    avg_viewers: Optional[float] = Field(default=None, description="Set at finalization.")
    hours_watched: Optional[float] = Field(default=None, description="Set at finalization.")
    sample_count: Optional[int] = Field(default=None, description="Set at finalization.")
    is_open: bool


class StreamSessionListResponse(BaseModel):
    total: int
    items: list[StreamSessionResponse]


class ViewerSampleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    viewer_count: int
    recorded_at: datetime
    game_name: Optional[str] = None


class ViewerSampleListResponse(BaseModel):
    session_id: int
    total: int
    items: list[ViewerSampleResponse]
