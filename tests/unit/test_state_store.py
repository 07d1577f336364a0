"""
tests/unit/test_state_store.py — StateStore Unit Tests
"""

from __future__ import annotations

import asyncio
import json

import pytest

from pulsekit.exceptions import StateStoreError
from pulsekit.state.store import StateStore


class TestStateStore:

    @pytest.mark.asyncio
    async def test_returns_defaults_when_file_missing(self, tmp_path):
        store = StateStore(tmp_path / "state.json", {"count": 0})
        assert await store.get() == {"count": 0}

    @pytest.mark.asyncio
    async def test_persists_and_retrieves(self, tmp_path):
        store = StateStore(tmp_path / "state.json", {"count": 0})
        await store.set({"count": 42})
        assert await store.get() == {"count": 42}
        # A fresh instance sees the same data
        assert await StateStore(tmp_path / "state.json", {"count": 0}).get() == {"count": 42}

    @pytest.mark.asyncio
    async def test_update_applies_function(self, tmp_path):
        store = StateStore(tmp_path / "state.json", {"count": 0})
        await store.set({"count": 10})
        result = await store.update(lambda s: {**s, "count": s["count"] + 5})
        assert result["count"] == 15
        assert (await store.get())["count"] == 15

    @pytest.mark.asyncio
    async def test_clear_resets_to_defaults(self, tmp_path):
        store = StateStore(tmp_path / "state.json", {"count": 0, "name": "test"})
        await store.set({"count": 42, "name": "modified"})
        await store.clear()
        assert await store.get() == {"count": 0, "name": "test"}

    @pytest.mark.asyncio
    async def test_merges_defaults_with_stored_state(self, tmp_path):
        store = StateStore(tmp_path / "state.json", {"a": 1, "b": 2})
        await store.set({"a": 99})
        result = await store.get()
        assert result["a"] == 99
        assert result["b"] == 2

    @pytest.mark.asyncio
    async def test_defaults_are_not_shared_between_calls(self, tmp_path):
        store = StateStore(tmp_path / "state.json", {"items": []})
        first = await store.get()
        first["items"].append("x")
        assert (await store.get())["items"] == []

    @pytest.mark.asyncio
    async def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "deeper" / "state.json"
        await StateStore(path).set({"ok": True})
        assert json.loads(path.read_text()) == {"ok": True}

    @pytest.mark.asyncio
    async def test_no_temp_file_left_behind(self, tmp_path):
        path = tmp_path / "state.json"
        await StateStore(path).set({"ok": True})
        assert sorted(p.name for p in tmp_path.iterdir()) == ["state.json"]

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_not_lost(self, tmp_path):
        store = StateStore(tmp_path / "state.json", {"count": 0})
        await asyncio.gather(*(
            store.update(lambda s: {**s, "count": s["count"] + 1}) for _ in range(20)
        ))
        assert (await store.get())["count"] == 20

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        with pytest.raises(StateStoreError) as exc_info:
            await StateStore(path).get()
        assert exc_info.value.path == str(path)

    @pytest.mark.asyncio
    async def test_non_object_json_raises(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(StateStoreError, match="JSON object"):
            await StateStore(path).get()

    @pytest.mark.asyncio
    async def test_unserialisable_state_raises(self, tmp_path):
        store = StateStore(tmp_path / "state.json")
        with pytest.raises(StateStoreError):
            await store.set({"bad": object()})
