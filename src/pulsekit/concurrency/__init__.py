"""
concurrency/ — admission and concurrency control for scheduled agent work.

Usage:
    from pulsekit.concurrency import RateLimiter, TaskQueue

    limiter = RateLimiter(capacity=10, refill_interval=60, min_spacing=3)
    queue = TaskQueue(concurrency=2, delay=1.0)
"""

from pulsekit.concurrency.rate_limiter import MIN_WAIT_SECONDS, RateLimiter
from pulsekit.concurrency.task_queue import DRAIN_POLL_SECONDS, QueueStats, TaskQueue

__all__ = [
    "RateLimiter",
    "MIN_WAIT_SECONDS",
    "TaskQueue",
    "QueueStats",
    "DRAIN_POLL_SECONDS",
]
