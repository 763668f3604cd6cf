"""
Sessions router.

GET /sessions                  — list sessions (paginated, newest first)
GET /sessions/{id}             — one session with its metrics
GET /sessions/{id}/samples     — the session's viewer samples in recorded order
"""
from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from watchtime.db.base import get_db
from watchtime.schemas.common import ErrorResponse, ValidationErrorResponse
from watchtime.schemas.sessions import (
    StreamSessionListResponse,
    StreamSessionResponse,
    ViewerSampleListResponse,
    ViewerSampleResponse,
)
from watchtime.services.reporting import get_session, list_samples, list_sessions

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get(
    "",
    response_model=StreamSessionListResponse,
    summary="List stream sessions (newest first)",
    responses={422: {"model": ValidationErrorResponse, "description": "Bad filter or page bounds."}},
)
def list_sessions_endpoint(
    creator_id: Optional[int] = Query(default=None, description="Only this creator's sessions."),
    status: Optional[Literal["open", "closed"]] = Query(
        default=None,
        description='"open" for live sessions, "closed" for finalized ones. Omit for all.',
    ),
    limit: int = Query(default=50, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    db: Session = Depends(get_db),
):
    total, items = list_sessions(
        db=db, creator_id=creator_id, status=status, limit=limit, offset=offset
    )
    return StreamSessionListResponse(
        total=total,
        items=[StreamSessionResponse.model_validate(s) for s in items],
    )


@router.get(
    "/{session_id}",
    response_model=StreamSessionResponse,
    summary="Get one stream session",
    responses={404: {"model": ErrorResponse, "description": "Session does not exist."}},
)
def get_session_endpoint(session_id: int, db: Session = Depends(get_db)):
    """
    Open sessions have `ended_at`, `avg_viewers`, `hours_watched` and
    `sample_count` set to null; `peak_viewers` is the max seen so far.
    """
    return StreamSessionResponse.model_validate(get_session(db, session_id))


@router.get(
    "/{session_id}/samples",
    response_model=ViewerSampleListResponse,
    summary="List a session's viewer samples",
    responses={404: {"model": ErrorResponse, "description": "Session does not exist."}},
)
def list_samples_endpoint(session_id: int, db: Session = Depends(get_db)):
    samples = list_samples(db, session_id)
    return ViewerSampleListResponse(
        session_id=session_id,
        total=len(samples),
        items=[ViewerSampleResponse.model_validate(s) for s in samples],
    )
