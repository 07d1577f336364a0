"""
observability/ — structured logging for pulsekit.
"""

from pulsekit.observability.logger import (
    bind_context,
    clear_context,
    get_logger,
    setup_logging,
    setup_logging_from_settings,
)

__all__ = [
    "bind_context",
    "clear_context",
    "get_logger",
    "setup_logging",
    "setup_logging_from_settings",
]
