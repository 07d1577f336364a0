"""
pulsekit — utilities for agents that act on a schedule.

Usage:
    from pulsekit import RateLimiter, TaskQueue, HeartbeatManager, DailyLog

    limiter = RateLimiter(capacity=10, refill_interval=60, min_spacing=3)
    queue = TaskQueue(concurrency=2, delay=1.0)
"""

from pulsekit.concurrency import QueueStats, RateLimiter, TaskQueue
from pulsekit.heartbeat import HEARTBEAT_OK, CheckConfig, HeartbeatManager, format_report
from pulsekit.memory import DailyLog
from pulsekit.state import StateStore

__version__ = "0.1.0"

__all__ = [
    "RateLimiter",
    "TaskQueue",
    "QueueStats",
    "StateStore",
    "HeartbeatManager",
    "CheckConfig",
    "HEARTBEAT_OK",
    "format_report",
    "DailyLog",
    "__version__",
]
