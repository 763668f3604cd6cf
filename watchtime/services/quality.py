"""
Data quality guard: inline checks and the carry-forward rule.

Inline
------
accept_viewer_count(count)   -> int | None
    Ok(n) with n >= 0 is a measurement, including an explicit 0 from the
    platform. Failed(...) is a client-side fallback and must never be stored.

is_valid_count(value)        -> bool
    Guard for values already loaded from the store.

Carry-forward
-------------
carry_forward(values, is_bad) -> dict[index, replacement]
    For each bad position, the nearest preceding good value; when nothing
    good precedes it, the nearest following good value. Never interpolates.

The offline repair passes that apply carry_forward to stored rows live in
watchtime.services.repair.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

from watchtime.services.platforms.base import Failed, Ok, ViewerCount

logger = logging.getLogger(__name__)


def is_valid_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def accept_viewer_count(count: ViewerCount, *, context: str = "") -> Optional[int]:
    """Return the integer to persist, or None when the count must be dropped."""
    if isinstance(count, Ok) and is_valid_count(count.value):
        return count.value
    reason = count.reason if isinstance(count, Failed) else f"invalid value {count!r}"
    logger.warning("Rejected viewer count%s: %s", f" for {context}" if context else "", reason)
    return None


def is_sentinel(value: Any) -> bool:
    """NULL or 0: what the old client-error path wrote instead of a value.

    Only a candidate: a 0 can also be a real measurement, so stored rows are
    judged against their sessions in watchtime.services.repair.
    """
    return value is None or value == 0


def carry_forward(
    values: Sequence[Any],
    is_bad: Callable[[Any], bool] = is_sentinel,
) -> dict[int, Any]:
    """
    Pick a replacement for every bad entry of a chronologically ordered series.

    Returns {index: replacement}. Bad entries with no good value anywhere in
    the series are omitted (nothing trustworthy to propagate).
    """
    replacements: dict[int, Any] = {}
    last_good: Any = None
    have_good = False
    pending_leading: list[int] = []

    for i, value in enumerate(values):
        if is_bad(value):
            if have_good:
                replacements[i] = last_good
            else:
                pending_leading.append(i)
            continue
        if not have_good and pending_leading:
            # Leading bad run: fall back to the first good value after it.
            for j in pending_leading:
                replacements[j] = value
            pending_leading = []
        last_good = value
        have_good = True

    return replacements
