"""
heartbeat/manager.py — Periodic Check Scheduling

Runs caller-supplied checks when they are due and aggregates their alerts.
The time each check last completed is persisted through a StateStore, so
intervals are respected across process restarts.

Example:
    heartbeat = HeartbeatManager("./data/state/heartbeat.json")

    checks = [
        CheckConfig(
            id="email",
            interval=30 * 60,
            check=has_unread_mail,          # async () -> bool
            message="You have new emails!",
        ),
    ]

    alerts = await heartbeat.run(checks)
    print(format_report(alerts))            # "HEARTBEAT_OK" when nothing is due
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

from pulsekit.exceptions import CheckFailedError
from pulsekit.observability.logger import get_logger
from pulsekit.state.store import StateStore

log = get_logger(__name__)

HEARTBEAT_OK = "HEARTBEAT_OK"

CheckFn = Callable[[], Awaitable[bool]]


@dataclass
class CheckConfig:
    id: str                             # e.g. "email", "calendar"
    interval: float                     # Minimum seconds between runs
    check: CheckFn                      # Returns True if something needs attention
    message: Optional[str] = None       # Alert text when the check triggers

    def alert_text(self) -> str:
        return self.message or f"Check '{self.id}' needs attention"


def format_report(alerts: Sequence[str]) -> str:
    """HEARTBEAT_OK when there are no alerts, otherwise one alert per line."""
    if not alerts:
        return HEARTBEAT_OK
    return "\n".join(alerts)


class HeartbeatManager:
    """
    Decides which checks are due, runs them, and records when they ran.

    A check's timestamp is updated after it completes, whatever it returned.
    If it raises, the timestamp is left alone so it is retried on the next
    run, and the failure is kept in `last_failures`.
    """

    def __init__(self, state_path: str | Path, clock: Callable[[], float] = time.time) -> None:
        self._state = StateStore(state_path, {"last_checks": {}})
        self._clock = clock
        self.last_failures: list[CheckFailedError] = []

    @classmethod
    def from_settings(cls, settings) -> "HeartbeatManager":
        return cls(settings.state_path)

    @property
    def state(self) -> StateStore:
        return self._state

    async def run(self, checks: Sequence[CheckConfig]) -> list[str]:
        """Run every due check. Returns alert messages (empty if all is well)."""
        state = await self._state.get()
        last_checks: dict[str, float] = state.get("last_checks", {})
        now = self._clock()
        alerts: list[str] = []
        self.last_failures = []

        for config in checks:
            last = last_checks.get(config.id) or 0
            if now - last < config.interval:
                log.debug("heartbeat.check.skipped", id=config.id,
                          due_in_s=round(config.interval - (now - last), 3))
                continue

            log.debug("heartbeat.check.due", id=config.id)
            try:
                needs_attention = await config.check()
            except Exception as e:
                failure = CheckFailedError(config.id, e)
                self.last_failures.append(failure)
                log.error("heartbeat.check.failed", id=config.id, error=str(failure))
                continue

            await self._set_last_check(config.id, now)

            if needs_attention:
                alerts.append(config.alert_text())
                log.info("heartbeat.check.alert", id=config.id)

        log.info("heartbeat.run.complete", checks=len(checks), alerts=len(alerts),
                 failures=len(self.last_failures))
        return alerts

    async def reset_check(self, check_id: str) -> None:
        """Make a check due on the next run."""
        await self._set_last_check(check_id, 0)
        log.info("heartbeat.check.reset", id=check_id)

    async def next_check_in(self, check_id: str, interval: float) -> float:
        """Seconds until the check is due; 0.0 if due now or never run."""
        state = await self._state.get()
        last = state.get("last_checks", {}).get(check_id)
        if not last:
            return 0.0

        remaining = interval - (self._clock() - last)
        return remaining if remaining > 0 else 0.0

    async def _set_last_check(self, check_id: str, timestamp: float) -> None:
        def _apply(s: dict) -> dict:
            return {**s, "last_checks": {**s.get("last_checks", {}), check_id: timestamp}}

        await self._state.update(_apply)
