"""
exceptions.py — pulsekit Unified Error Hierarchy

All pulsekit-specific exceptions live here. Every module raises typed
subclasses of PulseError — never bare Exception.

Import from here, not from individual modules:
    from pulsekit.exceptions import StateStoreError, ConfigurationError

Hierarchy:
    PulseError
    ├── ConfigurationError      (also a ValueError)
    ├── StateError
    │   └── StateStoreError
    ├── HeartbeatError
    │   └── CheckFailedError
    └── DailyLogError
"""

from __future__ import annotations


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

class PulseError(Exception):
    """Base class for all pulsekit exceptions."""


class ConfigurationError(PulseError, ValueError):
    """A component was constructed with values that break its invariants."""


# ─────────────────────────────────────────────────────────────────────────────
# State layer
# ─────────────────────────────────────────────────────────────────────────────

class StateError(PulseError):
    """Base for persisted state errors."""


class StateStoreError(StateError):
    """Reading, parsing or writing the JSON state file failed."""

    def __init__(self, path: str, message: str = "") -> None:
        self.path = path
        super().__init__(message or f"State store operation failed for '{path}'")


# ─────────────────────────────────────────────────────────────────────────────
# Heartbeat layer
# ─────────────────────────────────────────────────────────────────────────────

class HeartbeatError(PulseError):
    """Base for heartbeat scheduling errors."""


class CheckFailedError(HeartbeatError):
    """A periodic check raised while running."""

    def __init__(self, check_id: str, cause: BaseException) -> None:
        self.check_id = check_id
        self.cause = cause
        super().__init__(f"Heartbeat check '{check_id}' failed: {type(cause).__name__}: {cause}")


# ─────────────────────────────────────────────────────────────────────────────
# Daily log layer
# ─────────────────────────────────────────────────────────────────────────────

class DailyLogError(PulseError):
    """Reading or appending a daily log file failed."""


__all__ = [
    "PulseError",
    "ConfigurationError",
    # State
    "StateError",
    "StateStoreError",
    # Heartbeat
    "HeartbeatError",
    "CheckFailedError",
    # Daily log
    "DailyLogError",
]
