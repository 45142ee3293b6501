"""Core data models for the ballot ledger."""

from ballot.models.election import (
    MAX_PROPOSAL_NAME_BYTES,
    Proposal,
    Voter,
    VoterState,
    validate_proposal_name,
)

__all__ = [
    "MAX_PROPOSAL_NAME_BYTES",
    "Proposal",
    "Voter",
    "VoterState",
    "validate_proposal_name",
]
