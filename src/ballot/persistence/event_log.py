"""Ballot audit log: one record per committed election transition.

The log describes exactly one election. Its first record is the
ELECTION_CREATED event and no later record may create another. Each
later record is an enrollment, a delegation, or a vote, carrying the
payload fields that replay needs to re-apply it.

Records are sealed with a SHA-256 digest over their canonical JSON, so
an edited JSONL line (a changed proposal index or weight) is caught
when the file is read back. Rejected operations never reach the log.
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class EventKind(str, enum.Enum):
    """Committed ballot transitions."""
    ELECTION_CREATED = "election_created"
    VOTER_ENROLLED = "voter_enrolled"
    VOTE_DELEGATED = "vote_delegated"
    VOTE_CAST = "vote_cast"


# Payload fields each kind must carry for replay and audit.
PAYLOAD_FIELDS: dict[EventKind, frozenset[str]] = {
    EventKind.ELECTION_CREATED: frozenset({"chairperson", "proposals"}),
    EventKind.VOTER_ENROLLED: frozenset({"voter"}),
    EventKind.VOTE_DELEGATED: frozenset({"to", "delegate", "weight", "resolved_vote"}),
    EventKind.VOTE_CAST: frozenset({"proposal", "weight"}),
}


def check_payload(kind: EventKind, payload: dict[str, Any]) -> None:
    """Raise ValueError if payload lacks a field its kind requires."""
    missing = PAYLOAD_FIELDS[kind] - payload.keys()
    if missing:
        raise ValueError(
            f"{kind.value} payload missing field(s): {', '.join(sorted(missing))}"
        )


def seal(fields: dict[str, Any]) -> str:
    """Digest of the record fields (everything but the digest itself)."""
    body = json.dumps(fields, sort_keys=True, ensure_ascii=False)
    return "sha256:" + hashlib.sha256(body.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class EventRecord:
    """An immutable audit record of one committed transition."""
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @classmethod
    def create(
        cls,
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Build and seal a record. Raises ValueError on an incomplete payload."""
        check_payload(event_kind, payload)
        stamp = (timestamp_utc or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
        fields = {
            "event_id": event_id,
            "event_kind": event_kind.value,
            "timestamp_utc": stamp,
            "actor_id": actor_id,
            "payload": payload,
        }
        return cls(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=stamp,
            actor_id=actor_id,
            payload=payload,
            event_hash=seal(fields),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventRecord:
        """Parse a stored record, checking its seal, kind, and payload."""
        try:
            fields = {k: data[k] for k in (
                "event_id", "event_kind", "timestamp_utc", "actor_id", "payload",
            )}
            stored_hash = data["event_hash"]
        except KeyError as e:
            raise ValueError(f"record missing field {e.args[0]!r}") from e
        if seal(fields) != stored_hash:
            raise ValueError(f"event {fields['event_id']} does not match its seal")
        try:
            kind = EventKind(fields["event_kind"])
        except ValueError as e:
            raise ValueError(f"unknown event kind {fields['event_kind']!r}") from e
        check_payload(kind, fields["payload"])
        return cls(
            event_id=fields["event_id"],
            event_kind=kind,
            timestamp_utc=fields["timestamp_utc"],
            actor_id=fields["actor_id"],
            payload=fields["payload"],
            event_hash=stored_hash,
        )

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
    """The audit trail of a single election, optionally mirrored to JSONL.

    With a storage path, each record is written to the file before it is
    accepted in memory, so a failed write leaves both views unchanged.
    An existing file is read back and checked record by record.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._storage_path = storage_path
        self._records: list[EventRecord] = []
        self._ids: set[str] = set()
        if storage_path is not None and storage_path.exists():
            self._read(storage_path)

    def append(self, event: EventRecord) -> None:
        """Accept a record. Raises ValueError if it breaks the log's shape."""
        self._admit(event)
        if self._storage_path is not None:
            with self._storage_path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False) + "\n")
        self._records.append(event)
        self._ids.add(event.event_id)

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        return [e for e in self._records if kind is None or e.event_kind == kind]

    @property
    def count(self) -> int:
        return len(self._records)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._records[-1] if self._records else None

    @property
    def storage_path(self) -> Optional[Path]:
        return self._storage_path

    def _admit(self, event: EventRecord) -> None:
        if event.event_id in self._ids:
            raise ValueError(f"Duplicate event ID: {event.event_id}")
        creates = event.event_kind == EventKind.ELECTION_CREATED
        if creates and self._records:
            raise ValueError(f"{event.event_id}: log already holds an election")
        if not creates and not self._records:
            raise ValueError(f"{event.event_id}: first event must create the election")

    def _read(self, path: Path) -> None:
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    event = EventRecord.from_dict(json.loads(line))
                    self._admit(event)
                except ValueError as e:
                    raise ValueError(f"{path} line {line_num}: {e}") from e
                self._records.append(event)
                self._ids.add(event.event_id)
