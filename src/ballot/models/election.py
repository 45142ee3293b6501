"""Election data models: proposals and voter records.

A proposal is a named slot that accumulates resolved vote weight.
A voter record tracks how much weight an identity holds and whether
that weight has been spent, either on a direct vote or by delegation.

Invariants enforced by these models:
- Proposal names fit the 32-byte fixed-length string encoding.
- Voter weight is never negative.
- A voter is in exactly one VoterState at any time.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


# Fixed-length proposal labels: 32 bytes with a terminating NUL, so at
# most 31 bytes of UTF-8 payload.
MAX_PROPOSAL_NAME_BYTES = 31


class VoterState(str, enum.Enum):
    """Lifecycle state of a voter record.

    State machine:
        UNREGISTERED → REGISTERED → VOTED
        UNREGISTERED → REGISTERED → DELEGATED
    VOTED and DELEGATED are terminal for the voter's own operations.
    """
    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    VOTED = "voted"
    DELEGATED = "delegated"


def validate_proposal_name(name: str) -> str:
    """Check that a proposal name fits the fixed-length label encoding.

    Raises ValueError if the name is not a string or its UTF-8 encoding
    exceeds MAX_PROPOSAL_NAME_BYTES.
    """
    if not isinstance(name, str):
        raise ValueError(f"Proposal name must be a string, got {type(name).__name__}")
    size = len(name.encode("utf-8"))
    if size > MAX_PROPOSAL_NAME_BYTES:
        raise ValueError(
            f"Proposal name {name!r} is {size} bytes; "
            f"limit is {MAX_PROPOSAL_NAME_BYTES}"
        )
    return name


@dataclass
class Proposal:
    """A ballot option.

    The name is fixed at election creation. vote_count only grows, and
    only through a resolved vote.
    """
    name: str
    vote_count: int = 0

    def __post_init__(self) -> None:
        validate_proposal_name(self.name)
        if self.vote_count < 0:
            raise ValueError("vote_count cannot be negative")


@dataclass
class Voter:
    """A voter record keyed by identity in the VoterRegistry.

    weight == 0 means the identity holds no right to vote. delegate and
    vote are mutually exclusive: a voter either delegated or voted.
    """
    weight: int = 0
    voted: bool = False
    delegate: Optional[str] = None
    vote: Optional[int] = None

    def __post_init__(self) -> None:
        if self.weight < 0:
            raise ValueError(f"Voter weight cannot be negative, got {self.weight}")

    @property
    def state(self) -> VoterState:
        if self.voted:
            if self.delegate is not None:
                return VoterState.DELEGATED
            return VoterState.VOTED
        if self.weight == 0:
            return VoterState.UNREGISTERED
        return VoterState.REGISTERED

    @property
    def is_pending(self) -> bool:
        """True while this voter still holds unspent weight."""
        return self.state == VoterState.REGISTERED

    def to_dict(self) -> dict:
        return {
            "weight": self.weight,
            "voted": self.voted,
            "delegate": self.delegate,
            "vote": self.vote,
            "state": self.state.value,
        }
