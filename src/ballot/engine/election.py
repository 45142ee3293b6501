"""Election engine: enrollment, delegation, voting, and tally.

The Election owns the proposal list, the chairperson identity, and the
voter registry. Every mutating operation validates all preconditions
before its first write, so a rejected call leaves no trace.

Rules:
- Only the chairperson can give the right to vote, once per voter.
- A registered voter spends its weight exactly once, either by voting
  for a proposal or by delegating to another registered voter.
- Delegation follows the target's own delegation chain to its end.
  Weight lands on the final voter, or straight into that voter's
  proposal if it has already voted.
- A chain that leads back to the delegator is rejected.
- The winner is the first proposal with the strictly greatest count.

Concurrency: one re-entrant lock per election. Mutations and reads
both take it, so no reader ever sees a half-applied transition.
"""

from __future__ import annotations

import dataclasses
import threading
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Iterator, Sequence, TypeVar

from ballot.engine.errors import (
    AlreadyEnrolled,
    AlreadyVoted,
    DelegateNotAVoter,
    DelegationCycle,
    InvalidProposalIndex,
    NotAVoter,
    NotAuthorized,
    SelfDelegation,
)
from ballot.engine.registry import VoterRegistry, canonical_identity
from ballot.models.election import Proposal, Voter, VoterState


F = TypeVar("F", bound=Callable[..., Any])


def synchronized(fn: F) -> F:
    """Run a method while holding the instance's lock."""
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return fn(self, *args, **kwargs)
    return wrapper  # type: ignore[return-value]


@dataclasses.dataclass(frozen=True)
class DelegationOutcome:
    """What a committed delegation did with the delegator's weight."""
    delegate: str
    weight: int
    resolved_vote: int | None  # proposal index if folded straight into a vote


@dataclasses.dataclass(frozen=True)
class ElectionCheckpoint:
    """Saved election state, taken by Election.checkpoint()."""
    voters: dict[str, Voter]
    vote_counts: tuple[int, ...]
    granted_weight: int


class Election:
    """A single election with a fixed proposal list.

    Usage:
        election = Election("chair", ["A", "B", "C"])
        election.enroll("chair", "alice")
        election.vote("alice", 1)
        election.winner_name()  # "B"
    """

    def __init__(self, chairperson: str, proposal_names: Sequence[str]) -> None:
        names = list(proposal_names)
        if not names:
            raise ValueError("An election needs at least one proposal")
        self._proposals: tuple[Proposal, ...] = tuple(Proposal(name=n) for n in names)
        self._chairperson = canonical_identity(chairperson)
        self._voters = VoterRegistry()
        self._voters.set(self._chairperson, Voter(weight=1))
        self._granted_weight = 1
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @synchronized
    def enroll(self, caller: str, target: str) -> Voter:
        """Give target the right to vote (weight 1). Chairperson only."""
        caller = canonical_identity(caller)
        target = canonical_identity(target)
        if caller != self._chairperson:
            raise NotAuthorized()
        voter = self._voters.get(target)
        if voter.voted:
            raise AlreadyVoted()
        if voter.weight != 0:
            raise AlreadyEnrolled()

        voter.weight = 1
        self._voters.set(target, voter)
        self._granted_weight += 1
        return dataclasses.replace(voter)

    @synchronized
    def delegate(self, caller: str, to: str) -> DelegationOutcome:
        """Hand the caller's weight to `to`, or to the end of its chain."""
        caller = canonical_identity(caller)
        to = canonical_identity(to)
        sender = self._voters.get(caller)
        if sender.weight == 0:
            raise NotAVoter()
        if sender.voted:
            raise AlreadyVoted()
        if to == caller:
            raise SelfDelegation()

        path = self._voters.resolve_delegate(to, origin=caller)
        if path.cyclic:
            raise DelegationCycle(
                f"Found loop in delegation: {caller} -> {' -> '.join(path.hops)}"
            )
        final = self._voters.get(path.final)
        if final.weight == 0:
            raise DelegateNotAVoter()

        # Read once: sender.weight must not be re-read after writes.
        weight = sender.weight
        sender.voted = True
        sender.delegate = path.final
        self._voters.set(caller, sender)
        if final.voted:
            self._proposals[final.vote].vote_count += weight
            return DelegationOutcome(path.final, weight, final.vote)
        final.weight += weight
        return DelegationOutcome(path.final, weight, None)

    @synchronized
    def vote(self, caller: str, proposal_index: int) -> Voter:
        """Spend the caller's full weight on one proposal."""
        caller = canonical_identity(caller)
        sender = self._voters.get(caller)
        if sender.weight == 0:
            raise NotAVoter()
        if sender.voted:
            raise AlreadyVoted()
        if not self._valid_index(proposal_index):
            raise InvalidProposalIndex(
                f"Proposal index {proposal_index!r} out of range "
                f"(0..{len(self._proposals) - 1})"
            )

        sender.voted = True
        sender.vote = proposal_index
        self._voters.set(caller, sender)
        self._proposals[proposal_index].vote_count += sender.weight
        return dataclasses.replace(sender)

    @synchronized
    def checkpoint(self) -> ElectionCheckpoint:
        """Save the full voter and tally state.

        Used by callers that must undo a committed transition when a
        step outside the engine (such as the audit write) fails.
        """
        return ElectionCheckpoint(
            voters=self._voters.snapshot(),
            vote_counts=tuple(p.vote_count for p in self._proposals),
            granted_weight=self._granted_weight,
        )

    @synchronized
    def restore(self, checkpoint: ElectionCheckpoint) -> None:
        """Return to the state saved by checkpoint()."""
        self._voters.restore(checkpoint.voters)
        for proposal, count in zip(self._proposals, checkpoint.vote_counts):
            proposal.vote_count = count
        self._granted_weight = checkpoint.granted_weight

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Hold the lock for a block; undo its writes if the block raises."""
        with self._lock:
            saved = self.checkpoint()
            try:
                yield
            except BaseException:
                self.restore(saved)
                raise

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def chairperson(self) -> str:
        return self._chairperson

    @property
    @synchronized
    def proposals(self) -> tuple[Proposal, ...]:
        """Snapshot of all proposals, in creation order."""
        return tuple(dataclasses.replace(p) for p in self._proposals)

    @synchronized
    def proposal(self, index: int) -> Proposal:
        if not self._valid_index(index):
            raise IndexError(f"No proposal at index {index!r}")
        return dataclasses.replace(self._proposals[index])

    @synchronized
    def voter(self, identity: str) -> Voter:
        """Snapshot of a voter record (unknown identities read as weight 0)."""
        return dataclasses.replace(self._voters.get(identity))

    @synchronized
    def has_voted(self, identity: str) -> bool:
        return self._voters.get(identity).voted

    @synchronized
    def winning_proposal(self) -> int:
        """Index of the first proposal with the strictly greatest count."""
        winning_index = 0
        winning_count = 0
        for index, proposal in enumerate(self._proposals):
            if proposal.vote_count > winning_count:
                winning_count = proposal.vote_count
                winning_index = index
        return winning_index

    @synchronized
    def winner_name(self) -> str:
        return self._proposals[self.winning_proposal()].name

    @property
    @synchronized
    def granted_weight(self) -> int:
        """Total weight ever granted (chairperson's initial 1 included)."""
        return self._granted_weight

    @property
    @synchronized
    def voter_count(self) -> int:
        return self._voters.registered_count

    @property
    @synchronized
    def voted_count(self) -> int:
        return self._voters.voted_count

    @synchronized
    def check_invariants(self) -> list[str]:
        """Return invariant violations. Empty list means consistent.

        A non-empty result is a bug in the engine, not a runtime condition.
        """
        errors: list[str] = []

        chair = self._voters.get(self._chairperson)
        if chair.weight < 1:
            errors.append(f"chairperson {self._chairperson} has no weight")

        counted = sum(p.vote_count for p in self._proposals)
        pending = self._voters.pending_weight
        for identity, voter in self._voters.records():
            state = voter.state
            if state == VoterState.VOTED:
                if voter.vote is None or not self._valid_index(voter.vote):
                    errors.append(f"{identity}: voted with invalid index {voter.vote!r}")
            elif state == VoterState.DELEGATED:
                if voter.vote is not None:
                    errors.append(f"{identity}: both delegated and voted")
                if voter.delegate == identity:
                    errors.append(f"{identity}: delegated to self")
                elif not self._voters.exists(voter.delegate):
                    errors.append(
                        f"{identity}: delegate {voter.delegate} has no right to vote"
                    )
                elif self._voters.resolve_delegate(voter.delegate, identity).cyclic:
                    errors.append(f"{identity}: delegation chain is cyclic")

        if counted + pending != self._granted_weight:
            errors.append(
                f"weight not conserved: counted {counted} + pending {pending} "
                f"!= granted {self._granted_weight}"
            )
        return errors

    def _valid_index(self, index: object) -> bool:
        return (
            isinstance(index, int)
            and not isinstance(index, bool)
            and 0 <= index < len(self._proposals)
        )
