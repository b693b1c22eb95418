"""Fan classifier outcomes back out to the callers waiting on a flushed batch."""

from __future__ import annotations

import asyncio
from typing import Sequence

from chatsentry.datatypes.moderation_datatypes import (
    ModerationOutcome,
    ModerationRequest,
    conservative_outcomes,
    resolve_correlation_id,
)
from chatsentry.util.logger import get_logger

logger = get_logger("result_correlator")


def deliver_outcomes(
    items: Sequence[ModerationRequest],
    waiters: Sequence[asyncio.Future],
    outcomes: Sequence[ModerationOutcome] | None,
) -> int:
    """Resolve ``waiters[i]`` with ``outcomes[i]``.

    ``outcomes=None`` means the classifier call produced nothing; every waiter
    then gets the conservative outcome. A length mismatch is treated the same
    way. Each delivered outcome carries its item's correlation id. Futures that
    are already done (cancelled by their caller) are skipped.

    Returns:
        int: Number of futures actually resolved.
    """
    if outcomes is None or len(outcomes) != len(items):
        if outcomes is not None:
            logger.error("[CORRELATE] %d outcomes for %d items; resolving all conservatively", len(outcomes), len(items))
        outcomes = conservative_outcomes(items)

    delivered = 0
    for index, (item, waiter, outcome) in enumerate(zip(items, waiters, outcomes)):
        if waiter.done():
            logger.debug("[CORRELATE] Waiter for item %d already done; skipping", index)
            continue
        waiter.set_result(outcome.with_correlation_id(resolve_correlation_id(item, index)))
        delivered += 1
    return delivered


def fail_waiters(items: Sequence[ModerationRequest], waiters: Sequence[asyncio.Future]) -> int:
    """Resolve every pending waiter with the conservative outcome."""
    return deliver_outcomes(items, waiters, None)
