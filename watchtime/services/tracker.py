"""
Session tracker: per-creator session lifecycle, driven once per poll cycle.

Transition table
----------------
  open session?            verdict     action
  ----------------------   ---------   ---------------------------------------
  none                     NotLive     NOOP
  none                     Unknown     NOOP
  none                     Live        OPEN      new session, then sample
  open, same stream id     Live        CONTINUE  refresh title/category, sample
  open, other stream id    Live        ROTATE    finalize old, open new, sample
  open                     NotLive     CLOSE     finalize
  open                     Unknown     NOOP      still open; never finalize on
                                                 ambiguous data

Only an explicit NotLive or a changed stream id ends a session. A failed
lookup is a gap in the samples, not an end of stream.

The open session is looked up in the store every cycle; nothing about a
creator's state is kept in memory between runs.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from watchtime.models.poll_state import CreatorPollState
from watchtime.models.stream_session import StreamSession
from watchtime.services.finalizer import finalize_session
from watchtime.services.platforms.base import Live, NotLive, Ok, Unknown, Verdict
from watchtime.services.quality import is_valid_count
from watchtime.services.sampler import SampleOutcome, record_sample

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    NOOP = "noop"
    OPEN = "open"
    CONTINUE = "continue"
    ROTATE = "rotate"
    CLOSE = "close"


@dataclass
class TransitionResult:
    creator_id: int
    action: Action
    session_id: Optional[int] = None
    closed_session_id: Optional[int] = None
    sample: Optional[SampleOutcome] = None
    flagged_for_review: bool = False


# ---------------------------------------------------------------------------
# Pure decision
# ---------------------------------------------------------------------------

def decide(open_session: Optional[StreamSession], verdict: Verdict) -> Action:
    if isinstance(verdict, Unknown):
        return Action.NOOP
    if open_session is None:
        return Action.OPEN if isinstance(verdict, Live) else Action.NOOP
    if isinstance(verdict, NotLive):
        return Action.CLOSE
    if verdict.external_stream_id == open_session.stream_id:
        return Action.CONTINUE
    return Action.ROTATE


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------

def get_open_session(db: Session, creator_id: int) -> Optional[StreamSession]:
    return (
        db.query(StreamSession)
        .filter(StreamSession.creator_id == creator_id, StreamSession.ended_at.is_(None))
        .order_by(StreamSession.started_at.desc())
        .first()
    )


def _open_session(db: Session, creator_id: int, verdict: Live, now: datetime) -> StreamSession:
    """
    Upsert by (creator_id, stream_id).

    A closed row with the same stream id means an earlier NotLive was wrong
    and the broadcast carried on; it is reopened and its metrics cleared so
    the next finalization recomputes them over all its samples.
    """
    initial_peak = verdict.viewer_count.value if (
        isinstance(verdict.viewer_count, Ok) and is_valid_count(verdict.viewer_count.value)
    ) else 0

    session = (
        db.query(StreamSession)
        .filter(
            StreamSession.creator_id == creator_id,
            StreamSession.stream_id == verdict.external_stream_id,
        )
        .first()
    )
    if session is not None:
        logger.info(
            "Creator %s: reopening session %s (stream %s reported live again)",
            creator_id, session.id, session.stream_id,
        )
        session.ended_at = None
        session.avg_viewers = None
        session.hours_watched = None
        session.sample_count = None
        session.title = verdict.title
        session.game_name = verdict.category
        session.peak_viewers = max(session.peak_viewers or 0, initial_peak)
    else:
        session = StreamSession(
            creator_id=creator_id,
            stream_id=verdict.external_stream_id,
            started_at=verdict.started_at or now,
            title=verdict.title,
            game_name=verdict.category,
            peak_viewers=initial_peak,
        )
        db.add(session)
    db.flush()
    return session


def _update_poll_state(
    db: Session,
    creator_id: int,
    verdict: Verdict,
    now: datetime,
    review_threshold: int,
) -> bool:
    """Record this cycle's verdict. Returns True when the creator was just flagged."""
    state = db.get(CreatorPollState, creator_id)
    if state is None:
        state = CreatorPollState(creator_id=creator_id, consecutive_unknown=0, needs_review=False)
        db.add(state)

    state.last_verdict = verdict.kind
    state.last_polled_at = now
    newly_flagged = False

    if isinstance(verdict, Unknown):
        state.consecutive_unknown = (state.consecutive_unknown or 0) + 1
        state.last_reason = verdict.reason[:256]
        if review_threshold > 0 and state.consecutive_unknown >= review_threshold and not state.needs_review:
            state.needs_review = True
            newly_flagged = True
            logger.warning(
                "Creator %s: %d consecutive Unknown verdicts (last: %s); flagged for review",
                creator_id, state.consecutive_unknown, verdict.reason,
            )
    else:
        state.consecutive_unknown = 0
        state.last_reason = None
        state.needs_review = False
    return newly_flagged


# ---------------------------------------------------------------------------
# Public: apply one verdict
# ---------------------------------------------------------------------------

def apply_verdict(
    db: Session,
    creator_id: int,
    verdict: Verdict,
    now: datetime,
    review_threshold: int = 0,
) -> TransitionResult:
    """
    Apply one cycle's verdict for one creator. Flushes, does not commit;
    the caller owns the transaction (one savepoint per creator).
    """
    current = get_open_session(db, creator_id)
    action = decide(current, verdict)
    result = TransitionResult(creator_id=creator_id, action=action)

    if action in (Action.CLOSE, Action.ROTATE):
        finalize_session(db, current, ended_at=now)
        result.closed_session_id = current.id

    if action in (Action.OPEN, Action.ROTATE):
        current = _open_session(db, creator_id, verdict, now)
        logger.info(
            "Creator %s: stream %s started (session %s)",
            creator_id, current.stream_id, current.id,
        )
    elif action is Action.CONTINUE:
        if verdict.title:
            current.title = verdict.title
        if verdict.category:
            current.game_name = verdict.category

    if action in (Action.OPEN, Action.CONTINUE, Action.ROTATE):
        result.session_id = current.id
        result.sample = record_sample(db, current, verdict, now)
    elif current is not None and action is Action.NOOP:
        result.session_id = current.id

    result.flagged_for_review = _update_poll_state(db, creator_id, verdict, now, review_threshold)
    db.flush()
    return result
