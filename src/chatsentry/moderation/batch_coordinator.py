"""
BatchCoordinator: per-conversation batching of moderation requests.

Requests for the same conversation are collected into one open batch which is
flushed to the classifier gateway when it reaches ``max_batch_size`` or when
``timeout_seconds`` have passed since its first item, whichever comes first.
Each caller gets a future resolved with the outcome for its own request.

Usage:
    coordinator = BatchCoordinator(gateway, app_config.batching_settings("immediate"))
    outcome = await coordinator.submit(request)
    await coordinator.shutdown()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Protocol, Sequence, Set

from chatsentry.configuration.ai_settings import BatchingSettings
from chatsentry.configuration.app_configuration import app_config
from chatsentry.datatypes.moderation_datatypes import ModerationOutcome, ModerationRequest
from chatsentry.moderation import result_correlator
from chatsentry.util.logger import get_logger

logger = get_logger("batch_coordinator")


class ClassifierBackend(Protocol):
    """The gateway operations a coordinator flushes into."""

    async def classify_one(self, request: ModerationRequest) -> ModerationOutcome: ...

    async def classify_many(self, requests: Sequence[ModerationRequest]) -> List[ModerationOutcome]: ...


class BatchState(Enum):
    OPEN = "open"
    FLUSHING = "flushing"
    CLOSED = "closed"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class PendingBatch:
    """Requests collected for one conversation, with the futures awaiting them."""

    conversation_id: int
    items: List[ModerationRequest] = field(default_factory=list)
    waiters: List[asyncio.Future] = field(default_factory=list)
    timer: asyncio.TimerHandle | None = None
    created_at: float = 0.0
    last_arrival: float = 0.0
    state: BatchState = BatchState.OPEN

    def __len__(self) -> int:
        return len(self.items)


class BatchCoordinator:
    """
    Coalesce requests per conversation and flush them to a classifier gateway.

    Only one batch per conversation is open at a time. A flushed batch leaves
    the open map before the gateway is called, so new arrivals start a fresh
    batch while the previous one is still in flight.

    The flush timer starts with the first item and is not extended by later
    arrivals.
    """

    def __init__(self, gateway: ClassifierBackend, settings: BatchingSettings | None = None) -> None:
        settings = settings or app_config.batching_settings("immediate")
        self._gateway = gateway
        self._timeout = settings.timeout_seconds
        self._max_batch_size = settings.max_batch_size
        self._open: Dict[int, PendingBatch] = {}
        self._inflight: Set[asyncio.Task] = set()
        self._closed = False
        logger.debug(
            "[BATCH] Coordinator ready (timeout=%.2fs, max_batch_size=%d)",
            self._timeout,
            self._max_batch_size,
        )

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    @property
    def max_batch_size(self) -> int:
        return self._max_batch_size

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def open_batch(self, conversation_id: int) -> PendingBatch | None:
        """Return the open batch for `conversation_id`, if any."""
        return self._open.get(conversation_id)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def submit(self, request: ModerationRequest) -> asyncio.Future:
        """Queue `request` and return a future for its outcome.

        Must be called from within the running event loop. Requests without a
        correlation id get their position in the batch.
        """
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future = loop.create_future()

        if self._closed:
            logger.warning("[BATCH] Coordinator is shut down; resolving request conservatively")
            waiter.set_result(ModerationOutcome.conservative(request.correlation_id))
            return waiter

        batch = self._open.get(request.conversation_id)
        if batch is None:
            now = loop.time()
            batch = PendingBatch(conversation_id=request.conversation_id, created_at=now, last_arrival=now)
            batch.timer = loop.call_later(self._timeout, self._on_timer, batch)
            self._open[request.conversation_id] = batch
            logger.debug("[BATCH] Opened batch for conversation %s", request.conversation_id)

        if request.correlation_id is None:
            request = request.with_correlation_id(len(batch.items))

        batch.items.append(request)
        batch.waiters.append(waiter)
        batch.last_arrival = loop.time()

        if len(batch.items) >= self._max_batch_size:
            self._flush(batch, "size")
        return waiter

    async def moderate(self, request: ModerationRequest) -> ModerationOutcome:
        """Submit `request` and wait for its outcome."""
        return await self.submit(request)

    async def shutdown(self) -> None:
        """Flush every open batch and wait for all in-flight calls to finish."""
        self._closed = True
        for batch in list(self._open.values()):
            self._flush(batch, "shutdown")

        pending = list(self._inflight)
        if pending:
            logger.info("[BATCH] Waiting for %d in-flight batches", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("[BATCH] Coordinator shutdown complete")

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    def _on_timer(self, batch: PendingBatch) -> None:
        batch.timer = None
        self._flush(batch, "timeout")

    def _flush(self, batch: PendingBatch, trigger: str) -> None:
        """Detach `batch` from the open map and dispatch it. Runs once per batch."""
        if batch.state is not BatchState.OPEN:
            return
        batch.state = BatchState.FLUSHING

        if batch.timer is not None:
            batch.timer.cancel()
            batch.timer = None
        if self._open.get(batch.conversation_id) is batch:
            del self._open[batch.conversation_id]

        items = list(batch.items)
        waiters = list(batch.waiters)
        logger.debug(
            "[BATCH] Flushing %d items for conversation %s (trigger=%s)",
            len(items),
            batch.conversation_id,
            trigger,
        )

        task = asyncio.get_running_loop().create_task(self._dispatch(batch, items, waiters))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _dispatch(
        self,
        batch: PendingBatch,
        items: List[ModerationRequest],
        waiters: List[asyncio.Future],
    ) -> None:
        outcomes: List[ModerationOutcome] | None = None
        try:
            if len(items) == 1:
                outcomes = [await self._gateway.classify_one(items[0])]
            else:
                outcomes = await self._gateway.classify_many(items)
        except asyncio.CancelledError:
            result_correlator.fail_waiters(items, waiters)
            batch.state = BatchState.CLOSED
            raise
        except Exception as exc:
            logger.exception("[BATCH] Classifier call failed for conversation %s: %s", batch.conversation_id, exc)
            outcomes = None

        result_correlator.deliver_outcomes(items, waiters, outcomes)
        batch.state = BatchState.CLOSED
