"""
Polling cycle: one run of poller -> tracker -> {sampler, finalizer}.

Public API
----------
run_polling_cycle(db, platform, client, now, settings) -> CycleResult

Isolation
---------
Upstream lookups run in a bounded worker pool (one task per batch). All
store writes then happen on this thread, one creator at a time, each in its
own savepoint: a creator's close -> finalize or open -> sample never
interleaves with another write for the same creator, and a failed write
rolls back that creator only. The skipped creator is simply re-evaluated
next cycle from what the store holds.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from watchtime.core.config import Settings, settings as default_settings
from watchtime.services.platforms.base import PlatformClient, Unknown
from watchtime.services.poller import poll_creators
from watchtime.services.registry import list_creators
from watchtime.services.sampler import SampleOutcome
from watchtime.services.tracker import Action, apply_verdict

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    platform: str
    polled_at: datetime
    creators: int = 0
    live: int = 0
    unknown: int = 0
    failed_batches: int = 0
    sessions_started: int = 0
    sessions_continued: int = 0
    sessions_ended: int = 0
    samples_recorded: int = 0
    samples_rejected: int = 0
    skipped_writes: int = 0
    flagged_for_review: int = 0
    errors: list[str] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def run_polling_cycle(
    db: Session,
    platform: str,
    client: PlatformClient,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> CycleResult:
    """
    Poll every registered creator of `platform` once and apply the results.

    Idempotent for a given `now`: samples are keyed by (session, recorded_at)
    and every transition is re-derived from the store.
    """
    cfg = settings or default_settings
    polled_at = now or _utcnow()
    result = CycleResult(platform=platform, polled_at=polled_at)

    creators = list_creators(db, platform)
    result.creators = len(creators)
    if not creators:
        logger.info("%s: no creators registered; nothing to poll", platform)
        return result

    poll = poll_creators(
        client,
        creators,
        max_workers=cfg.POLL_WORKERS,
        batch_timeout=cfg.BATCH_TIMEOUT_SECONDS,
        retry_backoff=cfg.RETRY_BACKOFF_SECONDS,
    )
    result.live = poll.live_count
    result.unknown = poll.unknown_count
    result.failed_batches = poll.failed_batches

    for creator in creators:
        verdict = poll.verdicts.get(creator.internal_id, Unknown("no verdict returned"))
        savepoint = db.begin_nested()
        try:
            transition = apply_verdict(
                db,
                creator.internal_id,
                verdict,
                polled_at,
                review_threshold=cfg.UNKNOWN_STREAK_REVIEW_THRESHOLD,
            )
            savepoint.commit()
        except SQLAlchemyError as exc:
            savepoint.rollback()
            result.skipped_writes += 1
            result.errors.append(f"creator {creator.internal_id}: {exc.__class__.__name__}")
            logger.exception(
                "%s: store write failed for %s (creator %s); skipped this cycle",
                platform, creator.label, creator.internal_id,
            )
            continue

        if transition.action is Action.OPEN:
            result.sessions_started += 1
        elif transition.action is Action.CONTINUE:
            result.sessions_continued += 1
        elif transition.action is Action.CLOSE:
            result.sessions_ended += 1
        elif transition.action is Action.ROTATE:
            result.sessions_ended += 1
            result.sessions_started += 1

        if transition.sample is SampleOutcome.recorded:
            result.samples_recorded += 1
        elif transition.sample is SampleOutcome.rejected:
            result.samples_rejected += 1
        if transition.flagged_for_review:
            result.flagged_for_review += 1

    db.commit()

    logger.info(
        "%s cycle @ %s: %d creators, %d live, %d unknown | "
        "started %d, continued %d, ended %d | samples %d (rejected %d) | skipped writes %d",
        platform, polled_at.isoformat(), result.creators, result.live, result.unknown,
        result.sessions_started, result.sessions_continued, result.sessions_ended,
        result.samples_recorded, result.samples_rejected, result.skipped_writes,
    )
    return result
