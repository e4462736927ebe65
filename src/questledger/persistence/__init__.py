"""Persistence — append-only audit log and quest state snapshots."""

from questledger.persistence.event_log import EventKind, EventLog, EventRecord
from questledger.persistence.state_store import QuestStateStore

__all__ = ["EventKind", "EventLog", "EventRecord", "QuestStateStore"]
