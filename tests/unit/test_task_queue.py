"""
tests/unit/test_task_queue.py — TaskQueue Unit Tests

Covers:
  - Construction validation and from_settings()
  - add(): returns a future settling with the work's result or exception
  - Concurrency bound across many items
  - FIFO start order with concurrency=1
  - Failure isolation and in_flight accounting on every path
  - Inter-item delay is applied before the slot is released
  - drain(): immediate when idle, waits for late additions
  - Composition with RateLimiter inside queued work
"""

from __future__ import annotations

import asyncio
import math
import time

import pytest

from pulsekit.concurrency.rate_limiter import RateLimiter
from pulsekit.concurrency.task_queue import DRAIN_POLL_SECONDS, TaskQueue
from pulsekit.exceptions import ConfigurationError


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

class ConcurrencyProbe:
    """Work factory that records start order and peak concurrency."""

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0
        self.started: list[str] = []
        self.finished: list[str] = []

    def work(self, name: str, duration: float = 0.01, fail: bool = False):
        async def _run():
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.started.append(name)
            try:
                await asyncio.sleep(duration)
                if fail:
                    raise RuntimeError(f"{name} failed")
                return name
            finally:
                self.active -= 1
                self.finished.append(name)
        return _run


# ─────────────────────────────────────────────────────────────────────────────
# Construction
# ─────────────────────────────────────────────────────────────────────────────

class TestConstruction:

    @pytest.mark.parametrize("concurrency", [0, -2, 2.5, False])
    def test_rejects_invalid_concurrency(self, concurrency):
        with pytest.raises(ConfigurationError):
            TaskQueue(concurrency=concurrency)

    @pytest.mark.parametrize("delay", [-0.1, math.nan, math.inf])
    def test_rejects_invalid_delay(self, delay):
        with pytest.raises(ConfigurationError):
            TaskQueue(delay=delay)

    def test_defaults(self):
        q = TaskQueue()
        assert q.concurrency == 1
        assert q.delay == 0.0
        assert q.size() == 0
        assert q.in_flight == 0
        assert q.is_idle

    def test_from_settings(self):
        from pulsekit.config.settings import Settings
        q = TaskQueue.from_settings(Settings(queue={"concurrency": 3, "delay_seconds": 0.5}))
        assert q.concurrency == 3
        assert q.delay == 0.5


# ─────────────────────────────────────────────────────────────────────────────
# add() outcomes
# ─────────────────────────────────────────────────────────────────────────────

class TestAdd:

    @pytest.mark.asyncio
    async def test_future_resolves_with_result(self):
        q = TaskQueue()

        async def work():
            return 42

        assert await q.add(work) == 42

    @pytest.mark.asyncio
    async def test_future_raises_work_exception(self):
        q = TaskQueue()

        async def work():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await q.add(work)
        assert q.in_flight == 0

    @pytest.mark.asyncio
    async def test_add_does_not_block(self):
        q = TaskQueue(concurrency=1)
        probe = ConcurrencyProbe()
        futures = [q.add(probe.work(str(i), duration=0.05)) for i in range(5)]
        # All five were accepted synchronously; only one may have started
        assert len(futures) == 5
        assert q.size() == 4
        assert q.in_flight == 1
        await asyncio.gather(*futures)

    @pytest.mark.asyncio
    async def test_gather_returns_results_in_submission_order(self):
        q = TaskQueue(concurrency=3)
        probe = ConcurrencyProbe()
        results = await asyncio.gather(*(q.add(probe.work(n)) for n in "abcdef"))
        assert results == list("abcdef")

    @pytest.mark.asyncio
    async def test_stats_counts(self):
        q = TaskQueue(concurrency=2)
        probe = ConcurrencyProbe()
        outcomes = await asyncio.gather(
            q.add(probe.work("a")),
            q.add(probe.work("b", fail=True)),
            q.add(probe.work("c")),
            return_exceptions=True,
        )
        assert isinstance(outcomes[1], RuntimeError)
        assert q.stats.submitted == 3
        assert q.stats.succeeded == 2
        assert q.stats.failed == 1

    @pytest.mark.asyncio
    async def test_abandoned_future_does_not_break_queue(self):
        q = TaskQueue(concurrency=1)

        async def slow():
            await asyncio.sleep(0.1)
            return "late"

        fut = q.add(slow)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(fut, timeout=0.01)

        async def quick():
            return "ok"

        assert await q.add(quick) == "ok"
        await q.drain()
        assert q.in_flight == 0


# ─────────────────────────────────────────────────────────────────────────────
# Scheduling
# ─────────────────────────────────────────────────────────────────────────────

class TestScheduling:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [1, 2, 4])
    async def test_concurrency_never_exceeds_limit(self, limit):
        q = TaskQueue(concurrency=limit)
        probe = ConcurrencyProbe()
        futures = [q.add(probe.work(str(i), duration=0.01 * (i % 3 + 1))) for i in range(12)]
        await asyncio.gather(*futures)
        assert probe.peak <= limit
        assert probe.peak == min(limit, 12)

    @pytest.mark.asyncio
    async def test_in_flight_bounded_while_running(self):
        q = TaskQueue(concurrency=2)
        probe = ConcurrencyProbe()
        futures = [q.add(probe.work(str(i), duration=0.02)) for i in range(6)]
        while not q.is_idle:
            assert 0 <= q.in_flight <= 2
            await asyncio.sleep(0.005)
        await asyncio.gather(*futures)

    @pytest.mark.asyncio
    async def test_fifo_start_order(self):
        q = TaskQueue(concurrency=1)
        probe = ConcurrencyProbe()
        await asyncio.gather(
            q.add(probe.work("A", duration=0.03)),
            q.add(probe.work("B", duration=0.01)),
            q.add(probe.work("C", duration=0.02)),
        )
        assert probe.started == ["A", "B", "C"]
        assert probe.finished == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_completion_order_may_differ_with_parallelism(self):
        q = TaskQueue(concurrency=2)
        probe = ConcurrencyProbe()
        await asyncio.gather(
            q.add(probe.work("slow", duration=0.05)),
            q.add(probe.work("fast", duration=0.01)),
        )
        assert probe.started == ["slow", "fast"]
        assert probe.finished == ["fast", "slow"]

    @pytest.mark.asyncio
    async def test_failure_isolation(self):
        q = TaskQueue(concurrency=1)
        probe = ConcurrencyProbe()
        fa = q.add(probe.work("A"))
        fb = q.add(probe.work("B", fail=True))
        fc = q.add(probe.work("C"))

        await q.drain()

        assert fa.result() == "A"
        assert isinstance(fb.exception(), RuntimeError)
        assert fc.result() == "C"
        assert probe.started == ["A", "B", "C"]
        assert q.in_flight == 0

    @pytest.mark.asyncio
    async def test_non_awaitable_work_fails_its_own_future(self):
        q = TaskQueue()
        bad = q.add(lambda: "not awaitable")
        with pytest.raises(TypeError):
            await bad
        assert q.in_flight == 0

    @pytest.mark.asyncio
    async def test_delay_between_completions(self):
        q = TaskQueue(concurrency=1, delay=0.05)
        starts: list[float] = []

        def work():
            async def _run():
                starts.append(time.monotonic())
            return _run

        await asyncio.gather(q.add(work()), q.add(work()), q.add(work()))
        await q.drain()
        gaps = [b - a for a, b in zip(starts, starts[1:])]
        assert all(g >= 0.045 for g in gaps)

    @pytest.mark.asyncio
    async def test_slot_held_during_delay(self):
        q = TaskQueue(concurrency=1, delay=0.05)

        async def work():
            return None

        await q.add(work)
        # Outcome delivered, but the slot is still occupied by the delay
        assert q.in_flight == 1
        await q.drain()
        assert q.in_flight == 0


# ─────────────────────────────────────────────────────────────────────────────
# drain()
# ─────────────────────────────────────────────────────────────────────────────

class TestDrain:

    @pytest.mark.asyncio
    async def test_idle_drain_returns_immediately(self):
        q = TaskQueue()
        start = time.monotonic()
        await q.drain()
        await q.drain()
        assert time.monotonic() - start < DRAIN_POLL_SECONDS
        assert q.stats.submitted == 0

    @pytest.mark.asyncio
    async def test_drain_waits_for_all_items(self):
        q = TaskQueue(concurrency=2)
        probe = ConcurrencyProbe()
        for i in range(5):
            q.add(probe.work(str(i), duration=0.02))
        await q.drain()
        assert len(probe.finished) == 5
        assert q.size() == 0
        assert q.in_flight == 0

    @pytest.mark.asyncio
    async def test_drain_waits_for_items_added_while_draining(self):
        q = TaskQueue(concurrency=1)
        probe = ConcurrencyProbe()

        async def chained():
            await asyncio.sleep(0.01)
            q.add(probe.work("late", duration=0.02))
            return "first"

        q.add(chained)
        await q.drain()
        assert probe.finished == ["late"]
        assert q.is_idle

    @pytest.mark.asyncio
    async def test_concurrent_drains(self):
        q = TaskQueue(concurrency=2)
        probe = ConcurrencyProbe()
        for i in range(4):
            q.add(probe.work(str(i), duration=0.02))
        await asyncio.gather(q.drain(), q.drain(), q.drain())
        assert len(probe.finished) == 4

    def test_queue_reused_across_event_loops(self):
        q = TaskQueue(concurrency=1)
        probe = ConcurrencyProbe()

        async def run_batch(tag: str) -> list:
            futures = [q.add(probe.work(f"{tag}{i}", duration=0.02)) for i in range(2)]
            await q.drain()
            return await asyncio.gather(*futures)

        assert asyncio.run(run_batch("a")) == ["a0", "a1"]
        assert asyncio.run(run_batch("b")) == ["b0", "b1"]
        assert q.is_idle


# ─────────────────────────────────────────────────────────────────────────────
# Composition
# ─────────────────────────────────────────────────────────────────────────────

class TestWithRateLimiter:

    @pytest.mark.asyncio
    async def test_limiter_inside_queued_work(self):
        q = TaskQueue(concurrency=3)
        limiter = RateLimiter(capacity=10, refill_interval=60, min_spacing=0.03)
        admitted: list[float] = []

        def work():
            async def _run():
                await limiter.acquire()
                admitted.append(time.monotonic())
            return _run

        await asyncio.gather(*(q.add(work()) for _ in range(4)))
        admitted.sort()
        gaps = [b - a for a, b in zip(admitted, admitted[1:])]
        assert len(admitted) == 4
        assert all(g >= 0.025 for g in gaps)
        assert limiter.get_tokens() == 6
