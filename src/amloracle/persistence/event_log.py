"""Append-only audit log — the durable record of every registry operation.

Every successful state-changing or fee-charging operation produces exactly
one event record. Failed operations produce none: the service stages
events in a local buffer and appends them only after the operation has
fully succeeded.

Events are immutable once written. Each carries a SHA-256 hash of its
canonical JSON form so a persisted log can be verified on reload.
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class EventKind(str, enum.Enum):
    """Classification of registry audit events."""
    # Access control
    ROLE_GRANTED = "role_granted"
    ROLE_REVOKED = "role_revoked"
    ROLE_ADMIN_CHANGED = "role_admin_changed"
    # Settings
    DEFAULT_FEE_SET = "default_fee_set"
    FEE_ACCOUNT_SET = "fee_account_set"
    # Escrow
    DEPOSITED = "deposited"
    WITHDRAWN = "withdrawn"
    # Status records
    AML_STATUS_ASKED = "aml_status_asked"
    AML_STATUS_SET = "aml_status_set"
    AML_STATUS_DELETED = "aml_status_deleted"
    AML_STATUS_FETCHED = "aml_status_fetched"
    NOTIFIED = "notified"
    # Recovery
    ASSETS_RECOVERED = "assets_recovered"


def _json_safe(value: Any) -> Any:
    """Payload values must survive a JSONL round trip unchanged."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


@dataclass(frozen=True)
class EventRecord:
    """A single immutable audit event.

    actor_id is the caller of the operation; payload carries the
    identities and numeric parameters relevant to the event kind.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Build a record, normalising the payload and sealing it with a hash."""
        stamp = (timestamp_utc or datetime.now(timezone.utc)).strftime(TIMESTAMP_FORMAT)
        body = _json_safe(payload)
        unsealed = EventRecord(event_id, event_kind, stamp, actor_id, body, "")
        return EventRecord(event_id, event_kind, stamp, actor_id, body, unsealed.compute_hash())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventRecord:
        return cls(
            event_id=data["event_id"],
            event_kind=EventKind(data["event_kind"]),
            timestamp_utc=data["timestamp_utc"],
            actor_id=data["actor_id"],
            payload=data["payload"],
            event_hash=data["event_hash"],
        )

    def compute_hash(self) -> str:
        """SHA-256 over every field except the hash itself."""
        body = self.to_dict()
        del body["event_hash"]
        canonical = json.dumps(body, sort_keys=True, ensure_ascii=False)
        return "sha256:" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def verify(self) -> bool:
        return self.event_hash == self.compute_hash()

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }


class EventLog:
    """Append-only event log with optional JSONL file persistence.

    Usage:
        log = EventLog(storage_path=Path("data/events.jsonl"))
        log.append(EventRecord.create("EVT-00000001", EventKind.DEPOSITED, "0xA", {...}))
        log.events(EventKind.DEPOSITED)

    An existing file is replayed and verified on construction; a tampered
    or duplicated record makes construction fail.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._storage_path = storage_path
        self._events: list[EventRecord] = []
        self._seen: set[str] = set()

        if storage_path is not None and storage_path.exists():
            for line_num, event in self._read(storage_path):
                if event.event_id in self._seen:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event.event_id}"
                    )
                if not event.verify():
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event.event_id} "
                        f"does not match its stored hash"
                    )
                self._remember(event)

    def append(self, event: EventRecord) -> None:
        """Append an event.

        Raises ValueError on a reused event_id. With a storage path the
        line is written first, so an OSError leaves the log unchanged.
        """
        if event.event_id in self._seen:
            raise ValueError(f"Duplicate event ID: {event.event_id}")
        if self._storage_path is not None:
            self._storage_path.parent.mkdir(parents=True, exist_ok=True)
            line = json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False)
            with self._storage_path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        self._remember(event)

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_kind == kind]

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        if not self._events:
            return None
        return self._events[-1]

    def _remember(self, event: EventRecord) -> None:
        self._events.append(event)
        self._seen.add(event.event_id)

    @staticmethod
    def _read(path: Path) -> Iterator[tuple[int, EventRecord]]:
        with path.open("r", encoding="utf-8") as f:
            for line_num, raw in enumerate(f, 1):
                if raw.strip():
                    yield line_num, EventRecord.from_dict(json.loads(raw))
