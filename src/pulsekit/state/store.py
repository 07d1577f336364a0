"""
state/store.py — JSON State Store

Small key-value state persisted as one JSON object per file.

  - get() merges stored keys over the defaults, so new default keys appear
    automatically for files written by older versions.
  - set() writes <path>.tmp and renames it onto <path>; readers never see
    a half-written file.
  - update() is a read-modify-write guarded by an asyncio.Lock, so two
    coroutines updating the same store do not lose each other's writes.

Blocking file I/O runs in the loop's default executor.

Example:
    store = StateStore("./data/state/agent.json", {"last_check": 0, "items": []})
    await store.update(lambda s: {**s, "last_check": time.time()})
    current = await store.get()
"""

from __future__ import annotations

import asyncio
import copy
import json
import os
from pathlib import Path
from typing import Any, Callable

from pulsekit.exceptions import StateStoreError
from pulsekit.observability.logger import get_logger

log = get_logger(__name__)

State = dict[str, Any]


class StateStore:
    """JSON-file backed state with defaults merging and atomic replace."""

    def __init__(self, path: str | Path, defaults: State | None = None) -> None:
        self._path = Path(path).expanduser()
        self._defaults: State = copy.deepcopy(defaults or {})
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def defaults(self) -> State:
        return copy.deepcopy(self._defaults)

    # ── Public API ────────────────────────────────────────────────────────────

    async def get(self) -> State:
        """Current state, or a copy of the defaults if nothing is stored yet."""
        loop = asyncio.get_running_loop()
        stored = await loop.run_in_executor(None, self._read)
        merged = self.defaults
        merged.update(stored)
        return merged

    async def set(self, state: State) -> None:
        """Replace the stored state."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write, state)
        log.debug("state.saved", path=str(self._path), keys=len(state))

    async def update(self, fn: Callable[[State], State]) -> State:
        """Apply `fn` to the current state, store and return the result."""
        async with self._lock:
            current = await self.get()
            updated = fn(current)
            await self.set(updated)
            return updated

    async def clear(self) -> None:
        """Reset the stored state to the defaults."""
        async with self._lock:
            await self.set(self.defaults)
        log.info("state.cleared", path=str(self._path))

    # ── Blocking helpers (executor) ───────────────────────────────────────────

    def _read(self) -> State:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StateStoreError(str(self._path), f"Cannot read state file '{self._path}': {e}") from e

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StateStoreError(str(self._path), f"State file '{self._path}' is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise StateStoreError(
                str(self._path),
                f"State file '{self._path}' must hold a JSON object, got {type(data).__name__}",
            )
        return data

    def _write(self, state: State) -> None:
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            payload = json.dumps(state, indent=2)
        except (TypeError, ValueError) as e:
            raise StateStoreError(str(self._path), f"State is not JSON-serialisable: {e}") from e

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise StateStoreError(str(self._path), f"Cannot write state file '{self._path}': {e}") from e
