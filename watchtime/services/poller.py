"""
Live poller: batch creator lookups against a platform client.

Every creator handed in gets exactly one verdict back:
  * whatever the client said about it, or
  * Unknown when its batch failed (after one retry), timed out, returned
    malformed data, or simply did not mention it.

No exception raised by a batch escapes poll_creators(); one bad batch never
stops the others.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Callable

import httpx

from watchtime.core.errors import MalformedPayloadError, PlatformRequestError
from watchtime.services.platforms.base import Live, PlatformClient, Unknown, Verdict
from watchtime.services.registry import CreatorRef

logger = logging.getLogger(__name__)


@dataclass
class PollResult:
    verdicts: dict[int, Verdict] = field(default_factory=dict)
    batches: int = 0
    failed_batches: int = 0

    @property
    def live_count(self) -> int:
        return sum(1 for v in self.verdicts.values() if isinstance(v, Live))

    @property
    def unknown_count(self) -> int:
        return sum(1 for v in self.verdicts.values() if isinstance(v, Unknown))


def chunk(items: list, size: int) -> list[list]:
    if size < 1:
        raise ValueError("batch size must be positive")
    return [items[i:i + size] for i in range(0, len(items), size)]


def _check_batch(
    client: PlatformClient,
    identifiers: list[str],
    retry_backoff: float,
    sleep: Callable[[float], None],
) -> dict[str, Verdict]:
    """Query one batch, retrying once on transient failure."""
    try:
        return client.check_live(identifiers)
    except (PlatformRequestError, httpx.HTTPError) as exc:
        logger.warning(
            "%s: batch of %d failed (%s); retrying in %.1fs",
            client.platform, len(identifiers), exc, retry_backoff,
        )
    sleep(retry_backoff)
    return client.check_live(identifiers)


def _unknown_for(batch: list[CreatorRef], reason: str) -> dict[int, Verdict]:
    verdict = Unknown(reason)
    return {c.internal_id: verdict for c in batch}


def poll_creators(
    client: PlatformClient,
    creators: list[CreatorRef],
    *,
    max_workers: int = 4,
    batch_timeout: float = 30.0,
    retry_backoff: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """Resolve a live verdict for every creator. Never raises for upstream errors."""
    result = PollResult()
    if not creators:
        return result

    batches = chunk(creators, client.max_batch_size)
    result.batches = len(batches)

    executor = ThreadPoolExecutor(
        max_workers=max(1, min(max_workers, len(batches))),
        thread_name_prefix=f"poll-{client.platform}",
    )
    try:
        futures = [
            (
                batch,
                executor.submit(
                    _check_batch,
                    client,
                    [c.platform_identifier for c in batch],
                    retry_backoff,
                    sleep,
                ),
            )
            for batch in batches
        ]

        for index, (batch, future) in enumerate(futures):
            try:
                by_identifier = future.result(timeout=batch_timeout)
            except FutureTimeout:
                future.cancel()
                logger.warning(
                    "%s: batch %d/%d timed out after %.0fs; %d creators Unknown",
                    client.platform, index + 1, len(batches), batch_timeout, len(batch),
                )
                result.failed_batches += 1
                result.verdicts.update(_unknown_for(batch, "batch timed out"))
                continue
            except (PlatformRequestError, MalformedPayloadError, httpx.HTTPError) as exc:
                logger.warning(
                    "%s: batch %d/%d failed: %s; %d creators Unknown",
                    client.platform, index + 1, len(batches), exc, len(batch),
                )
                result.failed_batches += 1
                result.verdicts.update(_unknown_for(batch, str(exc)))
                continue
            except Exception:
                logger.exception(
                    "%s: batch %d/%d raised unexpectedly; %d creators Unknown",
                    client.platform, index + 1, len(batches), len(batch),
                )
                result.failed_batches += 1
                result.verdicts.update(_unknown_for(batch, "unexpected client error"))
                continue

            for creator in batch:
                verdict = by_identifier.get(creator.platform_identifier)
                if verdict is None:
                    verdict = Unknown("no verdict returned")
                result.verdicts[creator.internal_id] = verdict
    finally:
        # Don't wait on a stalled request; its batch is already Unknown.
        executor.shutdown(wait=False, cancel_futures=True)

    logger.info(
        "%s: polled %d creators in %d batches: %d live, %d unknown, %d failed batches",
        client.platform, len(creators), result.batches,
        result.live_count, result.unknown_count, result.failed_batches,
    )
    return result
