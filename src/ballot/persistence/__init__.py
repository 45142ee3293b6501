"""Audit persistence: the append-only ballot event log."""

from ballot.persistence.event_log import EventKind, EventLog, EventRecord

__all__ = ["EventKind", "EventLog", "EventRecord"]
