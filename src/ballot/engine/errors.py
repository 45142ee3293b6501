"""Typed rejections raised by the election engine.

A rejection is a deliberate domain answer, not a fault. Every rejection
is raised before the first write, so the election is left exactly as it
was before the call.
"""

from __future__ import annotations

import enum


class RejectionKind(str, enum.Enum):
    """Classification of rejected election operations."""
    NOT_AUTHORIZED = "not_authorized"
    ALREADY_VOTED = "already_voted"
    ALREADY_ENROLLED = "already_enrolled"
    NOT_A_VOTER = "not_a_voter"
    SELF_DELEGATION = "self_delegation"
    DELEGATION_CYCLE = "delegation_cycle"
    DELEGATE_NOT_A_VOTER = "delegate_not_a_voter"
    INVALID_PROPOSAL_INDEX = "invalid_proposal_index"


class ElectionRejection(Exception):
    """Base class for all rejected election operations."""
    kind: RejectionKind
    default_message: str = "Operation rejected."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class NotAuthorized(ElectionRejection):
    kind = RejectionKind.NOT_AUTHORIZED
    default_message = "Only chairperson can give right to vote."


class AlreadyVoted(ElectionRejection):
    kind = RejectionKind.ALREADY_VOTED
    default_message = "The voter already voted."


class AlreadyEnrolled(ElectionRejection):
    kind = RejectionKind.ALREADY_ENROLLED
    default_message = "The voter already has the right to vote."


class NotAVoter(ElectionRejection):
    kind = RejectionKind.NOT_A_VOTER
    default_message = "Has no right to vote."


class SelfDelegation(ElectionRejection):
    kind = RejectionKind.SELF_DELEGATION
    default_message = "Self-delegation is disallowed."


class DelegationCycle(ElectionRejection):
    kind = RejectionKind.DELEGATION_CYCLE
    default_message = "Found loop in delegation."


class DelegateNotAVoter(ElectionRejection):
    kind = RejectionKind.DELEGATE_NOT_A_VOTER
    default_message = "Delegate has no right to vote."


class InvalidProposalIndex(ElectionRejection):
    kind = RejectionKind.INVALID_PROPOSAL_INDEX
    default_message = "Proposal index out of range."
