"""Tests for the quest event log — proves append-only, tamper-evident persistence."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from questledger.persistence.event_log import EventKind, EventLog, EventRecord


def _now() -> datetime:
    return datetime(2026, 2, 16, 12, 0, 0, tzinfo=timezone.utc)


def _event(event_id: str = "EVT-00000001", kind: EventKind = EventKind.REWARD_CLAIMED,
           quest_id: str = "q1") -> EventRecord:
    return EventRecord.create(
        event_id=event_id,
        event_kind=kind,
        actor_id="alice",
        payload={"quest_id": quest_id, "payout": 10},
        timestamp_utc=_now(),
    )


class TestEventRecord:
    def test_hash_is_deterministic(self) -> None:
        assert _event().event_hash == _event().event_hash
        assert _event().event_hash.startswith("sha256:")

    def test_hash_covers_payload(self) -> None:
        assert _event(quest_id="q1").event_hash != _event(quest_id="q2").event_hash

    def test_timestamp_format(self) -> None:
        assert _event().timestamp_utc == "2026-02-16T12:00:00Z"


class TestEventLog:
    def test_append_and_filter(self) -> None:
        log = EventLog()
        log.append(_event("EVT-1", EventKind.QUEST_CREATED))
        log.append(_event("EVT-2", EventKind.REWARD_CLAIMED))
        log.append(_event("EVT-3", EventKind.REWARD_CLAIMED, quest_id="q2"))
        assert log.count == 3
        assert len(log.events(EventKind.REWARD_CLAIMED)) == 2
        assert len(log.events_for_quest("q1")) == 2
        assert len(log.events_for_quest("q2", EventKind.REWARD_CLAIMED)) == 1
        assert log.last_event.event_id == "EVT-3"

    def test_duplicate_id_rejected(self) -> None:
        log = EventLog()
        log.append(_event("EVT-1"))
        with pytest.raises(ValueError):
            log.append(_event("EVT-1"))
        assert log.count == 1

    def test_empty_log(self) -> None:
        assert EventLog().last_event is None


class TestEventLogPersistence:
    def test_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        log = EventLog(path)
        log.append(_event("EVT-1"))
        log.append(_event("EVT-2", EventKind.FEE_WITHDRAWN))

        reloaded = EventLog(path)
        assert reloaded.count == 2
        assert reloaded.events()[1].event_kind == EventKind.FEE_WITHDRAWN
        assert reloaded.events()[0].event_hash == log.events()[0].event_hash

    def test_tampered_record_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(path).append(_event("EVT-1"))
        record = json.loads(path.read_text(encoding="utf-8"))
        record["payload"]["payout"] = 1_000_000
        path.write_text(json.dumps(record) + "\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Integrity check failed"):
            EventLog(path)

    def test_duplicate_on_recovery_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(path).append(_event("EVT-1"))
        line = path.read_text(encoding="utf-8")
        path.write_text(line + line, encoding="utf-8")
        with pytest.raises(ValueError, match="Duplicate event ID"):
            EventLog(path)
