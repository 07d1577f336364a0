"""
memory/daily_log.py — Daily Markdown Notes

Append-only notes kept as one Markdown file per UTC day:

    <directory>/2026-10-18.md

    # 2026-10-18

    ## 09:15:02

    Completed gap detector proposal

    ## 11:40:57

    ### Inbox sweep

    3 threads archived

Offsets select a day relative to today: 0 is today, -1 yesterday.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from pulsekit.exceptions import DailyLogError
from pulsekit.observability.logger import get_logger

log = get_logger(__name__)

ENTRY_SEPARATOR = "\n\n---\n\n"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DailyLog:
    """Read and append the per-day Markdown files under one directory."""

    def __init__(self, directory: str | Path, now: Callable[[], datetime] = _utc_now) -> None:
        self._directory = Path(directory).expanduser()
        self._now = now
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings) -> "DailyLog":
        return cls(settings.memory_dir)

    @property
    def directory(self) -> Path:
        return self._directory

    def date_for(self, offset: int = 0) -> str:
        return (self._now() + timedelta(days=offset)).date().isoformat()

    def path_for(self, offset: int = 0) -> Path:
        return self._directory / f"{self.date_for(offset)}.md"

    async def exists(self, offset: int = 0) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.path_for(offset).is_file)

    async def read(self, offset: int = 0) -> str:
        """Contents of the day's file, or "" if it has not been written."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read, self.path_for(offset))

    async def append(self, content: str, offset: int = 0) -> None:
        """
        Append a timestamped entry, creating the file with a date heading if needed.

        Appends through one DailyLog are serialised, so concurrent writers on a
        fresh day produce a single heading.
        """
        path = self.path_for(offset)
        timestamp = self._now().strftime("%H:%M:%S")
        loop = asyncio.get_running_loop()
        async with self._lock:
            await loop.run_in_executor(None, self._append, path, self.date_for(offset), timestamp, content)
        log.debug("daily_log.appended", path=str(path), chars=len(content))

    async def log(self, header: str, content: str, offset: int = 0) -> None:
        """Append an entry with its own ### heading."""
        await self.append(f"### {header}\n\n{content}", offset)

    async def recent_context(self, days: int = 2) -> str:
        """Today and the preceding days (newest first), skipping empty days."""
        sections: list[str] = []
        for i in range(days):
            content = await self.read(-i)
            if not content:
                continue
            if i == 0:
                label = "Today"
            elif i == 1:
                label = "Yesterday"
            else:
                label = f"{i} days ago"
            sections.append(f"## {label} ({self.date_for(-i)})\n\n{content}")
        return ENTRY_SEPARATOR.join(sections)

    # ── Blocking helpers (executor) ───────────────────────────────────────────

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except OSError as e:
            raise DailyLogError(f"Cannot read daily log '{path}': {e}") from e

    @staticmethod
    def _append(path: Path, date: str, timestamp: str, content: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            is_new = not path.exists() or path.stat().st_size == 0
            entry = f"## {timestamp}\n\n{content}"
            with path.open("a", encoding="utf-8") as f:
                f.write(f"# {date}\n\n{entry}" if is_new else f"\n\n{entry}")
        except OSError as e:
            raise DailyLogError(f"Cannot append to daily log '{path}': {e}") from e
