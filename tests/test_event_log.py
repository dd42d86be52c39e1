"""Tests for the append-only event log — ordering, persistence and tamper detection."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from ecoflow.persistence.event_log import EventKind, EventLog, EventRecord


def _record(event_id: str = "EVT-X", amount: int = 5) -> EventRecord:
    return EventRecord.create(
        event_id=event_id,
        event_kind=EventKind.MINT,
        actor_id="admin",
        payload={"recipient": "alice", "amount": amount, "height": 3},
    )


class TestAppend:
    def test_record_assigns_sequential_ids(self) -> None:
        log = EventLog()
        first = log.record(EventKind.MINT, "admin", {"amount": 1})
        second = log.record(EventKind.BURN, "alice", {"amount": 1})
        assert first.event_id == "EVT-00000001"
        assert second.event_id == "EVT-00000002"
        assert log.count == 2
        assert log.last_event == second

    def test_duplicate_id_rejected(self) -> None:
        log = EventLog()
        log.append(_record("EVT-1"))
        with pytest.raises(ValueError):
            log.append(_record("EVT-1"))
        assert log.count == 1

    def test_filter_by_kind_and_height(self) -> None:
        log = EventLog()
        log.record(EventKind.MINT, "admin", {"height": 1})
        log.record(EventKind.TRANSFER, "alice", {"height": 5})
        log.record(EventKind.MINT, "admin", {"height": 9})
        assert len(log.events(EventKind.MINT)) == 2
        assert len(log.events_since_height(5)) == 2
        assert len(log.events_since_height(5, EventKind.MINT)) == 1

    def test_hash_is_deterministic(self) -> None:
        ts = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        a = EventRecord.create("EVT-1", EventKind.MINT, "admin", {"amount": 5}, ts)
        b = EventRecord.create("EVT-1", EventKind.MINT, "admin", {"amount": 5}, ts)
        c = EventRecord.create("EVT-1", EventKind.MINT, "admin", {"amount": 6}, ts)
        assert a.event_hash == b.event_hash
        assert a.event_hash != c.event_hash
        assert a.event_hash.startswith("sha256:")


class TestPersistence:
    def test_reload_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        log = EventLog(storage_path=path)
        log.record(EventKind.MINT, "admin", {"recipient": "alice", "amount": 2**100})
        log.record(EventKind.TRANSFER, "alice", {"sender": "alice", "recipient": "bob", "amount": 1})

        reloaded = EventLog(storage_path=path)
        assert reloaded.count == 2
        assert reloaded.event_hashes() == log.event_hashes()
        assert reloaded.events()[0].payload["amount"] == 2**100

    def test_numbering_continues_after_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).record(EventKind.MINT, "admin", {})
        event = EventLog(storage_path=path).record(EventKind.MINT, "admin", {})
        assert event.event_id == "EVT-00000002"

    def test_tampered_payload_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).record(EventKind.MINT, "admin", {"amount": 5})

        data = json.loads(path.read_text(encoding="utf-8"))
        data["payload"]["amount"] = 5_000
        path.write_text(json.dumps(data) + "\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Integrity check failed"):
            EventLog(storage_path=path)

    def test_duplicate_line_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).record(EventKind.MINT, "admin", {})
        line = path.read_text(encoding="utf-8")
        path.write_text(line + line, encoding="utf-8")
        with pytest.raises(ValueError, match="Duplicate event ID"):
            EventLog(storage_path=path)
