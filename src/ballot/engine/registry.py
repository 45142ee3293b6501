"""Voter registry: identity → voter record storage.

Any identity can be looked up. An identity that was never stored reads
as a default record with weight 0 (not a registered voter), and that
lookup does not create a record. Records are only created by set() and
are never removed.

The registry performs no authorization. Deciding who may enroll,
delegate, or vote is the Election's job.

Thread-safety: this class is not thread-safe. The owning Election
serialises access.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Iterator

from ballot.models.election import Voter


def canonical_identity(identity: str) -> str:
    """Normalise a voter identity. Raises ValueError if blank."""
    if not isinstance(identity, str):
        raise ValueError(f"Voter identity must be a string, got {type(identity).__name__}")
    canonical = identity.strip()
    if not canonical:
        raise ValueError("Voter identity cannot be blank")
    return canonical


@dataclass(frozen=True)
class DelegationPath:
    """Result of walking a delegation chain.

    final is the last identity reached. hops lists every identity visited,
    in order, starting with the walk's start. cyclic is True if the walk
    reached the origin or revisited an identity.
    """
    final: str
    hops: tuple[str, ...]
    cyclic: bool


class VoterRegistry:
    """Mapping from voter identity to Voter record."""

    def __init__(self) -> None:
        self._voters: dict[str, Voter] = {}

    def get(self, identity: str) -> Voter:
        """Return the stored record, or a fresh unregistered default."""
        voter = self._voters.get(canonical_identity(identity))
        if voter is None:
            return Voter()
        return voter

    def set(self, identity: str, voter: Voter) -> None:
        self._voters[canonical_identity(identity)] = voter

    def exists(self, identity: str) -> bool:
        """True if the identity holds a right to vote (weight > 0)."""
        return self.get(identity).weight > 0

    def resolve_delegate(self, start: str, origin: str) -> DelegationPath:
        """Follow delegate links from start until a voter with no delegate.

        The walk stops early, marked cyclic, if it reaches origin or
        visits an identity twice. It never takes more steps than there
        are stored records, so it terminates on any graph.
        """
        origin = canonical_identity(origin)
        current = canonical_identity(start)
        visited: set[str] = set()
        hops: list[str] = []
        limit = len(self._voters) + 1

        while True:
            if current == origin or current in visited:
                hops.append(current)
                return DelegationPath(final=current, hops=tuple(hops), cyclic=True)
            visited.add(current)
            hops.append(current)

            nxt = self.get(current).delegate
            if nxt is None:
                return DelegationPath(final=current, hops=tuple(hops), cyclic=False)
            if len(hops) > limit:
                return DelegationPath(final=current, hops=tuple(hops), cyclic=True)
            current = nxt

    def identities(self) -> list[str]:
        return list(self._voters)

    def records(self) -> Iterator[tuple[str, Voter]]:
        return iter(list(self._voters.items()))

    @property
    def count(self) -> int:
        return len(self._voters)

    @property
    def registered_count(self) -> int:
        return sum(1 for v in self._voters.values() if v.weight > 0)

    @property
    def voted_count(self) -> int:
        return sum(1 for v in self._voters.values() if v.voted)

    @property
    def pending_weight(self) -> int:
        """Weight held by voters who have neither voted nor delegated."""
        return sum(v.weight for v in self._voters.values() if v.is_pending)

    def snapshot(self) -> dict[str, Voter]:
        """Copy every stored record, for restore()."""
        return {k: dataclasses.replace(v) for k, v in self._voters.items()}

    def restore(self, records: dict[str, Voter]) -> None:
        """Replace all stored records with a snapshot() result."""
        self._voters = {k: dataclasses.replace(v) for k, v in records.items()}
