"""Ballot service: unified facade over the election engine.

This is the primary interface for programmatic access to a ballot.
It wraps a single Election and:
- turns engine rejections into typed ServiceResults,
- records one audit event per committed transition,
- rebuilds an election from an existing event log (replay).

Operations that are rejected leave both the election and the event log
untouched. Audit is fail-closed: if the event cannot be appended, the
transition is rolled back and the call fails, so the log never lags
behind the tally.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from ballot.engine.election import Election
from ballot.engine.errors import ElectionRejection
from ballot.models.election import Proposal, Voter
from ballot.persistence.event_log import EventKind, EventLog, EventRecord


class AuditTrailError(Exception):
    """Raised when a committed transition cannot be written to the event log."""


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class BallotService:
    """Facade for one election plus its audit trail.

    Usage:
        service = BallotService.create("chair", ["A", "B", "C"])
        service.give_right_to_vote("chair", "alice")
        service.vote("alice", 1)
        service.winner_name()  # "B"

    Persistence (optional):
        log = EventLog(storage_path=Path("data/events.jsonl"))
        service = BallotService.create("chair", names, event_log=log)
        # later
        service = BallotService.replay(EventLog(storage_path=...))
    """

    def __init__(self, election: Election, event_log: Optional[EventLog] = None) -> None:
        self._election = election
        self._event_log = event_log if event_log is not None else EventLog()
        self._event_counter = self._event_log.count
        self._lock = threading.Lock()

    @classmethod
    def create(
        cls,
        chairperson: str,
        proposal_names: Sequence[str],
        event_log: Optional[EventLog] = None,
    ) -> BallotService:
        """Start a new election and record its creation.

        Raises ValueError if the proposal list is invalid or the event
        log already holds events or cannot record the creation.
        """
        if event_log is not None and event_log.count:
            raise ValueError("Event log already holds an election; use replay()")
        election = Election(chairperson, proposal_names)
        service = cls(election, event_log)
        try:
            service._record_event(
                EventKind.ELECTION_CREATED,
                election.chairperson,
                {
                    "chairperson": election.chairperson,
                    "proposals": [p.name for p in election.proposals],
                },
            )
        except AuditTrailError as e:
            raise ValueError(str(e)) from e
        return service

    @classmethod
    def replay(cls, event_log: EventLog) -> BallotService:
        """Rebuild the election recorded in event_log.

        The log must start with ELECTION_CREATED. Every later event is
        re-applied in order; one that the engine rejects means the log
        does not describe a valid election, and raises ValueError.
        """
        events = event_log.events()
        if not events or events[0].event_kind != EventKind.ELECTION_CREATED:
            raise ValueError("Event log does not start with an election")

        first = events[0].payload
        election = Election(first["chairperson"], first["proposals"])
        for event in events[1:]:
            p = event.payload
            try:
                if event.event_kind == EventKind.VOTER_ENROLLED:
                    election.enroll(event.actor_id, p["voter"])
                elif event.event_kind == EventKind.VOTE_DELEGATED:
                    election.delegate(event.actor_id, p["to"])
                elif event.event_kind == EventKind.VOTE_CAST:
                    election.vote(event.actor_id, p["proposal"])
                else:
                    raise ValueError(
                        f"{event.event_id}: unexpected {event.event_kind.value} event"
                    )
            except ElectionRejection as e:
                raise ValueError(f"{event.event_id}: replay rejected: {e}") from e
            except KeyError as e:
                raise ValueError(f"{event.event_id}: malformed payload") from e
        return cls(election, event_log)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def give_right_to_vote(self, caller: str, voter: str) -> ServiceResult:
        """Chairperson grants `voter` a weight of 1."""
        def apply() -> tuple[EventKind, dict[str, Any], dict[str, Any]]:
            record = self._election.enroll(caller, voter)
            payload = {"voter": voter.strip()}
            return EventKind.VOTER_ENROLLED, payload, {
                "voter": voter.strip(), "weight": record.weight,
            }
        return self._transition(caller, apply)

    def delegate(self, caller: str, to: str) -> ServiceResult:
        """Delegate the caller's weight to `to` (or the end of its chain)."""
        def apply() -> tuple[EventKind, dict[str, Any], dict[str, Any]]:
            outcome = self._election.delegate(caller, to)
            payload = {
                "to": to.strip(),
                "delegate": outcome.delegate,
                "weight": outcome.weight,
                "resolved_vote": outcome.resolved_vote,
            }
            return EventKind.VOTE_DELEGATED, payload, dict(payload)
        return self._transition(caller, apply)

    def vote(self, caller: str, proposal_index: int) -> ServiceResult:
        """Cast the caller's full weight for one proposal."""
        def apply() -> tuple[EventKind, dict[str, Any], dict[str, Any]]:
            record = self._election.vote(caller, proposal_index)
            payload = {"proposal": proposal_index, "weight": record.weight}
            return EventKind.VOTE_CAST, payload, dict(payload)
        return self._transition(caller, apply)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def election(self) -> Election:
        return self._election

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    def winning_proposal(self) -> int:
        return self._election.winning_proposal()

    def winner_name(self) -> str:
        return self._election.winner_name()

    def get_voter(self, identity: str) -> Voter:
        """Look up a voter. Unknown identities read as weight 0."""
        return self._election.voter(identity)

    def get_proposal(self, index: int) -> Optional[Proposal]:
        try:
            return self._election.proposal(index)
        except IndexError:
            return None

    def status(self) -> dict[str, Any]:
        """Return an election-wide summary."""
        election = self._election
        with self._lock:
            proposals = election.proposals
            winning = election.winning_proposal()
            return {
                "chairperson": election.chairperson,
                "proposals": [
                    {"index": i, "name": p.name, "vote_count": p.vote_count}
                    for i, p in enumerate(proposals)
                ],
                "winning_proposal": winning,
                "winner_name": proposals[winning].name,
                "voters": {
                    "registered": election.voter_count,
                    "voted": election.voted_count,
                },
                "granted_weight": election.granted_weight,
                "events": self._event_log.count,
                "invariant_violations": election.check_invariants(),
            }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _transition(
        self,
        caller: str,
        apply: Callable[[], tuple[EventKind, dict[str, Any], dict[str, Any]]],
    ) -> ServiceResult:
        """Apply an engine transition and record its audit event.

        Both steps run inside Election.atomic(): if the audit append
        fails, the transition is undone and the call fails. The service
        lock keeps the log order equal to the commit order.
        """
        with self._lock:
            try:
                with self._election.atomic():
                    kind, payload, data = apply()
                    self._record_event(kind, caller.strip(), payload)
            except ElectionRejection as e:
                return ServiceResult(
                    success=False,
                    errors=[str(e)],
                    data={"rejection": e.kind.value},
                )
            except AuditTrailError as e:
                return ServiceResult(success=False, errors=[str(e)])
            except ValueError as e:
                return ServiceResult(success=False, errors=[str(e)])
            return ServiceResult(success=True, data=data)

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _record_event(
        self,
        kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
    ) -> None:
        """Append an audit event. Raises AuditTrailError on failure.

        A failed append gives its event id back, so ids stay contiguous.
        """
        try:
            event = EventRecord.create(
                event_id=self._next_event_id(),
                event_kind=kind,
                actor_id=actor_id,
                payload=payload,
            )
            self._event_log.append(event)
        except (ValueError, OSError) as e:
            self._event_counter -= 1
            raise AuditTrailError(f"Audit-trail failure: {e}") from e
