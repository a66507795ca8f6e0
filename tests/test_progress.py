import asyncio
import json

import pytest

from tools.progress import ProgressSnapshot, ProgressStore, new_session_id
from tools.stream import format_event, stream_progress


def decode(frame):
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):])


async def collect(generator):
    return [decode(frame) async for frame in generator]


class TestProgressStore:
    def test_set_get_delete(self):
        store = ProgressStore()
        store.set("s1", ProgressSnapshot.starting())

        assert store.get("s1") == ProgressSnapshot(0, "Starting...")
        assert "s1" in store
        assert store.delete("s1") is True
        assert store.get("s1") is None
        assert store.delete("s1") is False

    def test_snapshot_replaces_previous(self):
        store = ProgressStore()
        store.set("s1", ProgressSnapshot.starting())
        store.update("s1", ProgressSnapshot(30, "Saving your information..."))

        assert store.get("s1").percent == 30
        assert len(store) == 1

    def test_update_drops_write_for_removed_session(self):
        store = ProgressStore()

        assert store.update("gone", ProgressSnapshot(100, "Complete")) is False
        assert store.get("gone") is None

    def test_sessions_are_isolated(self):
        store = ProgressStore()
        store.set("a", ProgressSnapshot(10, "Validating your information..."))
        store.set("b", ProgressSnapshot(30, "Saving your information..."))

        store.delete("a")

        assert store.get("a") is None
        assert store.get("b").percent == 30

    def test_stale_entries_are_evicted(self, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr("tools.progress.time.monotonic", lambda: clock[0])
        store = ProgressStore(ttl=60)
        store.set("old", ProgressSnapshot.starting())

        clock[0] += 61
        store.set("new", ProgressSnapshot.starting())

        assert store.get("old") is None
        assert store.get("new") is not None

    def test_session_ids_are_unique(self):
        ids = {new_session_id() for _ in range(100)}

        assert len(ids) == 100


class TestSnapshot:
    def test_terminal_states(self):
        assert ProgressSnapshot(100, "Complete").is_terminal
        assert ProgressSnapshot.failed("Invalid email format", "INVALID_EMAIL", "email").is_terminal
        assert not ProgressSnapshot(90, "Updating your record...").is_terminal

    def test_wire_format(self):
        snapshot = ProgressSnapshot.failed("Invalid email format", "INVALID_EMAIL", "email")

        assert decode(format_event(snapshot)) == {
            "percent": 0,
            "message": "Invalid email format",
            "isError": True,
            "result": {"code": "INVALID_EMAIL", "field": "email"},
        }


class TestStreamProgress:
    @pytest.mark.asyncio
    async def test_streams_until_terminal_and_removes_entry(self):
        store = ProgressStore()
        store.set("s1", ProgressSnapshot(100, "Complete", result={"recordId": "rec123"}))

        events = await collect(stream_progress("s1", store, interval=0))

        assert [e["percent"] for e in events] == [0, 100]
        assert events[-1]["result"] == {"recordId": "rec123"}
        assert store.get("s1") is None

    @pytest.mark.asyncio
    async def test_starting_snapshot_is_not_repeated(self):
        store = ProgressStore()
        store.set("s1", ProgressSnapshot.starting())

        async def finish_later():
            await asyncio.sleep(0.05)
            store.update("s1", ProgressSnapshot(10, "Validating your information..."))
            await asyncio.sleep(0.05)
            store.update("s1", ProgressSnapshot.failed("Missing required field", "MISSING_REQUIRED_FIELD", "email"))

        writer = asyncio.create_task(finish_later())
        events = await collect(stream_progress("s1", store, interval=0.005))
        await writer

        assert [e["percent"] for e in events] == [0, 10, 0]
        assert events[-1]["isError"] is True
        assert events[-1]["result"]["field"] == "email"

    @pytest.mark.asyncio
    async def test_disconnect_stops_stream_and_removes_entry(self):
        store = ProgressStore()
        store.set("s1", ProgressSnapshot(30, "Saving your information..."))

        async def is_disconnected():
            return True

        events = await collect(stream_progress("s1", store, is_disconnected, interval=0))

        assert [e["message"] for e in events] == ["Starting..."]
        assert store.get("s1") is None

    @pytest.mark.asyncio
    async def test_closing_stream_removes_entry(self):
        store = ProgressStore()
        store.set("s1", ProgressSnapshot(30, "Saving your information..."))

        stream = stream_progress("s1", store, interval=0.01)
        assert decode(await stream.__anext__())["percent"] == 0
        assert decode(await stream.__anext__())["percent"] == 30
        await stream.aclose()

        assert store.get("s1") is None

    @pytest.mark.asyncio
    async def test_vanished_entry_ends_stream(self):
        store = ProgressStore()

        events = await collect(stream_progress("unknown", store, interval=0))

        assert [e["percent"] for e in events] == [0]

    @pytest.mark.asyncio
    async def test_other_sessions_are_untouched(self):
        store = ProgressStore()
        store.set("a", ProgressSnapshot(100, "Complete", result={"recordId": "recA"}))
        store.set("b", ProgressSnapshot(60, "Lead analyzed"))

        events = await collect(stream_progress("a", store, interval=0))

        assert events[-1]["result"] == {"recordId": "recA"}
        assert store.get("b") == ProgressSnapshot(60, "Lead analyzed")
