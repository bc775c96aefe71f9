"""Persistence layer — audit event log and state storage."""

from amloracle.persistence.event_log import EventKind, EventLog, EventRecord
from amloracle.persistence.state_store import StateStore

__all__ = ["EventKind", "EventLog", "EventRecord", "StateStore"]
