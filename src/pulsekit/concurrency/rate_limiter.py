"""
concurrency/rate_limiter.py — Token Bucket Rate Limiter

Admission control for a single rate-limited resource (an external API, a
mailbox, a search endpoint). A discrete token bucket: the bucket holds at
most `capacity` tokens and is topped up by `capacity` tokens every
`refill_interval` seconds. An optional `min_spacing` forces a gap between
two successful admissions regardless of how many tokens remain.

Refill is lazy: it is recomputed on every admission check. When a refill
happens, `last_refill_at` moves to *now*, not to the last whole interval
boundary, so progress toward the next refill is not banked.

Example:
    limiter = RateLimiter(capacity=10, refill_interval=60, min_spacing=3)

    await limiter.acquire()          # suspends until admitted
    data = await api_call()

    if limiter.try_acquire():        # never suspends
        ...
"""

from __future__ import annotations

import asyncio
import math
import time
from typing import Callable, Optional

from pulsekit.exceptions import ConfigurationError
from pulsekit.observability.logger import get_logger

log = get_logger(__name__)

# Lower bound for an empty-bucket wait in acquire()
MIN_WAIT_SECONDS = 0.1

Clock = Callable[[], float]


class RateLimiter:
    """
    Token bucket with minimum inter-admission spacing.

    One instance per limited resource. Not thread-safe: all calls are
    expected to come from a single asyncio event loop, where the
    check-and-consume sequence in try_acquire() never crosses an await.
    """

    def __init__(
        self,
        capacity: int,
        refill_interval: float,
        min_spacing: Optional[float] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        """
        Args:
            capacity:        Maximum tokens held, and tokens restored per refill.
            refill_interval: Seconds after which the bucket is refilled.
            min_spacing:     Optional minimum seconds between two admissions.
            clock:           Monotonic time source in seconds.
        """
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise ConfigurationError(f"capacity must be a positive integer, got {capacity!r}")
        if not math.isfinite(refill_interval) or refill_interval <= 0:
            raise ConfigurationError(f"refill_interval must be a finite number > 0, got {refill_interval!r}")
        if min_spacing is not None and (not math.isfinite(min_spacing) or min_spacing < 0):
            raise ConfigurationError(f"min_spacing must be a finite number >= 0, got {min_spacing!r}")

        self._capacity = capacity
        self._refill_interval = float(refill_interval)
        self._min_spacing = float(min_spacing) if min_spacing else None
        self._clock = clock

        self._tokens = capacity
        self._last_refill_at = clock()
        self._last_admitted_at: Optional[float] = None

    # ── Factory ───────────────────────────────────────────────────────────────

    @classmethod
    def from_settings(cls, settings, name: str) -> "RateLimiter":
        """Create the limiter configured under rate_limits.<name>."""
        cfg = settings.rate_limit(name)
        return cls(
            capacity=cfg.capacity,
            refill_interval=cfg.refill_interval_seconds,
            min_spacing=cfg.min_spacing_seconds,
        )

    # ── Configuration (read-only) ─────────────────────────────────────────────

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def refill_interval(self) -> float:
        return self._refill_interval

    @property
    def min_spacing(self) -> Optional[float]:
        return self._min_spacing

    # ── Admission ─────────────────────────────────────────────────────────────

    def try_acquire(self) -> bool:
        """Consume a token if admission is possible right now. Never suspends."""
        self._refill()
        now = self._clock()

        if self._spacing_remaining(now) > 0:
            return False

        if self._tokens >= 1:
            self._tokens -= 1
            self._last_admitted_at = now
            return True

        return False

    async def acquire(self) -> None:
        """
        Suspend until a token has been consumed.

        A spacing denial sleeps exactly the remaining spacing; an empty bucket
        sleeps until the next refill, but never less than MIN_WAIT_SECONDS.
        Callers contend for tokens without any ordering among them.
        """
        while True:
            if self.try_acquire():
                return

            now = self._clock()
            wait = self._spacing_remaining(now)
            reason = "spacing"
            if wait <= 0:
                wait = max(self._refill_remaining(now), MIN_WAIT_SECONDS)
                reason = "empty"

            log.debug("rate_limiter.wait", reason=reason, wait_s=round(wait, 4), tokens=self._tokens)
            await asyncio.sleep(wait)

    def get_tokens(self) -> int:
        """Current token count after applying any due refill. Does not consume."""
        self._refill()
        return self._tokens

    def time_until_available(self) -> float:
        """Seconds until try_acquire() could succeed; 0.0 if it would succeed now."""
        self._refill()
        now = self._clock()
        spacing = self._spacing_remaining(now)
        if self._tokens >= 1:
            return spacing
        return max(spacing, self._refill_remaining(now))

    # ── Internals ─────────────────────────────────────────────────────────────

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill_at

        if elapsed >= self._refill_interval:
            intervals = math.floor(elapsed / self._refill_interval)
            self._tokens = min(self._capacity, self._tokens + intervals * self._capacity)
            self._last_refill_at = now

    def _spacing_remaining(self, now: float) -> float:
        if not self._min_spacing or self._last_admitted_at is None:
            return 0.0
        return max(0.0, self._min_spacing - (now - self._last_admitted_at))

    def _refill_remaining(self, now: float) -> float:
        return max(0.0, self._refill_interval - (now - self._last_refill_at))

    def __repr__(self) -> str:
        return (
            f"RateLimiter(capacity={self._capacity}, refill_interval={self._refill_interval}, "
            f"min_spacing={self._min_spacing}, tokens={self._tokens})"
        )
