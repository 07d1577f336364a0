"""
concurrency/task_queue.py — Bounded-Concurrency Task Queue

In-memory FIFO of asynchronous work with a concurrency cap and an optional
pause after each completion. Useful for batching calls to a rate-limited
service: compose with RateLimiter by acquiring inside the queued work.

Example:
    queue = TaskQueue(concurrency=2, delay=1.0)
    limiter = RateLimiter(capacity=10, refill_interval=60)

    async def fetch(paper_id: str) -> dict:
        await limiter.acquire()
        return await api.fetch_paper(paper_id)

    results = await asyncio.gather(
        queue.add(lambda: fetch("id1")),
        queue.add(lambda: fetch("id2")),
        queue.add(lambda: fetch("id3")),
    )

Items start strictly in arrival order. With concurrency > 1 they may
finish in any order. A failing item only fails its own future; there is
no retry in this layer.
"""

from __future__ import annotations

import asyncio
import math
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from pulsekit.exceptions import ConfigurationError
from pulsekit.observability.logger import get_logger

log = get_logger(__name__)

# Upper bound on how long drain() sleeps between idleness re-checks
DRAIN_POLL_SECONDS = 0.1

Work = Callable[[], Awaitable[Any]]


@dataclass
class QueueStats:
    submitted: int = 0
    succeeded: int = 0
    failed: int = 0


class TaskQueue:
    """
    FIFO work queue running at most `concurrency` items at once.

    All bookkeeping (pending, in_flight) is mutated only between await
    points on the owning event loop, so no lock is needed.
    """

    def __init__(self, concurrency: int = 1, delay: float = 0.0) -> None:
        """
        Args:
            concurrency: Max items executing simultaneously.
            delay:       Seconds to pause after an item completes before its
                         slot is released to the next item.
        """
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
            raise ConfigurationError(f"concurrency must be a positive integer, got {concurrency!r}")
        if not math.isfinite(delay) or delay < 0:
            raise ConfigurationError(f"delay must be a finite number >= 0, got {delay!r}")

        self._concurrency = concurrency
        self._delay = float(delay)

        self._pending: deque[tuple[Work, asyncio.Future]] = deque()
        self._in_flight = 0
        self._running: set[asyncio.Task] = set()
        self._idle: Optional[asyncio.Event] = None
        self.stats = QueueStats()

    @classmethod
    def from_settings(cls, settings) -> "TaskQueue":
        cfg = settings.queue
        return cls(concurrency=cfg.concurrency, delay=cfg.delay_seconds)

    # ── Public API ────────────────────────────────────────────────────────────

    def add(self, work: Work) -> asyncio.Future:
        """
        Enqueue `work` and return a future for its outcome.

        Never blocks. Must be called with a running event loop; awaiting the
        returned future yields the work's result or re-raises its exception.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._pending.append((work, future))
        self.stats.submitted += 1
        self._idle_event().clear()
        log.debug("queue.item.added", queued=len(self._pending), in_flight=self._in_flight)
        self._schedule()
        return future

    def size(self) -> int:
        """Number of items not yet started."""
        return len(self._pending)

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def is_idle(self) -> bool:
        return not self._pending and self._in_flight == 0

    async def drain(self) -> None:
        """
        Wait until nothing is pending and nothing is in flight.

        Idleness is re-checked after every wake-up, so work added by other
        callers while draining is waited for as well.
        """
        while not self.is_idle:
            idle = self._idle_event()
            try:
                await asyncio.wait_for(idle.wait(), timeout=DRAIN_POLL_SECONDS)
            except asyncio.TimeoutError:
                pass

    # ── Scheduling ────────────────────────────────────────────────────────────

    def _schedule(self) -> None:
        """Start pending items while a slot is free."""
        while self._in_flight < self._concurrency and self._pending:
            work, future = self._pending.popleft()
            self._in_flight += 1
            task = asyncio.create_task(self._run(work, future))
            self._running.add(task)
            task.add_done_callback(self._running.discard)

    async def _run(self, work: Work, future: asyncio.Future) -> None:
        log.debug("queue.item.start", in_flight=self._in_flight, queued=len(self._pending))
        try:
            try:
                result = await work()
            except Exception as e:
                self.stats.failed += 1
                log.debug("queue.item.failed", error=f"{type(e).__name__}: {e}")
                if not future.done():
                    future.set_exception(e)
            else:
                self.stats.succeeded += 1
                if not future.done():
                    future.set_result(result)

            if self._delay > 0:
                await asyncio.sleep(self._delay)
        finally:
            # Release the slot on every path, including cancellation
            self._in_flight -= 1
            if not future.done():
                future.cancel()
            self._schedule()
            if self.is_idle and self._idle is not None:
                # Wake drainers and drop the event so the next add() gets one
                # bound to whichever loop is running then
                self._idle.set()
                self._idle = None

    def _idle_event(self) -> asyncio.Event:
        # Created lazily so the queue can be built outside a running loop
        if self._idle is None:
            self._idle = asyncio.Event()
            if self.is_idle:
                self._idle.set()
        return self._idle

    def __repr__(self) -> str:
        return (
            f"TaskQueue(concurrency={self._concurrency}, delay={self._delay}, "
            f"queued={len(self._pending)}, in_flight={self._in_flight})"
        )
