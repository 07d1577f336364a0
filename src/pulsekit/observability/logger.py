"""
observability/logger.py — pulsekit Structured Logger

Sets up structlog with:
  - JSON output to a rotating log file
  - Optional console output, human-readable (dev mode) or JSON (pipe mode)
  - Consistent fields on every log line: timestamp, level, logger, event

Library modules only call get_logger(); nothing here runs on import.
Applications (and the pulsekit CLI) call setup_logging() once at startup.

Usage:
    from pulsekit.observability.logger import get_logger, setup_logging

    setup_logging(level="INFO", log_dir="./data/logs", console_output=False)
    log = get_logger(__name__)
    log.info("queue.item.start", queued=3, in_flight=1)
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Optional

import structlog

LOG_FILE_NAME = "pulsekit.log"


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────


def setup_logging(
    level: str = "INFO",
    log_dir: str | Path = "./data/logs",
    json_format: Optional[bool] = None,  # None = auto-detect from tty
    console_output: bool = True,
    max_bytes: int = 10 * 1024 * 1024,   # 10 MB
    backup_count: int = 5,
) -> None:
    """
    Configure structlog and stdlib logging. Call once at application startup.

    Args:
        level:          Log level string — DEBUG | INFO | WARNING | ERROR | CRITICAL
        log_dir:        Directory for rotating log files.
        json_format:    If True, console emits JSON. If False, console uses the
                        coloured ConsoleRenderer. If None, pretty when stdout is
                        a TTY and JSON otherwise.
        console_output: Whether to emit logs to stderr at all.
        max_bytes:      Max size of each log file before rotation.
        backup_count:   Number of rotated log files to keep.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if json_format is None:
        json_format = not sys.stderr.isatty()

    # ── Shared structlog processors ───────────────────────────────────────────
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    # ── Handlers ──────────────────────────────────────────────────────────────
    handlers: list[logging.Handler] = []

    file_handler = logging.handlers.RotatingFileHandler(
        filename=log_dir / LOG_FILE_NAME,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(numeric_level)
    handlers.append(file_handler)

    # stderr, so CLI output on stdout stays machine-readable
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        handlers.append(console_handler)

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=handlers,
        force=True,
    )

    # ── Configure structlog ───────────────────────────────────────────────────
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    console_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    # File always uses JSON regardless of console format
    file_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=shared_processors,
    )

    for handler in handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            handler.setFormatter(file_formatter)
        else:
            handler.setFormatter(console_formatter)


def setup_logging_from_settings(settings) -> None:
    """Configure logging from a pulsekit Settings object."""
    cfg = settings.logging
    setup_logging(
        level=cfg.level,
        log_dir=cfg.log_dir,
        json_format=cfg.json_format,
        console_output=cfg.console_output,
        max_bytes=cfg.max_file_size_mb * 1024 * 1024,
        backup_count=cfg.backup_count,
    )


def get_logger(name: str = "pulsekit", **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """
    Get a bound logger with optional initial context values.

    Example:
        log = get_logger(__name__, component="task_queue")
        log.info("queue.item.start", in_flight=1)
        # → {"event": "queue.item.start", "in_flight": 1,
        #    "component": "task_queue", "logger": "pulsekit.concurrency.task_queue", ...}
    """
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger


def bind_context(**values: Any) -> None:
    """
    Bind values to every subsequent log call in this async context.

    structlog's contextvars integration attaches them to each log line in
    the current coroutine and the tasks it spawns afterwards.
    """
    structlog.contextvars.bind_contextvars(**values)


def clear_context() -> None:
    """Clear values bound with bind_context()."""
    structlog.contextvars.clear_contextvars()
