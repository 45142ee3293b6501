"""Election engine: voter registry, delegation, and tally."""

from ballot.engine.election import DelegationOutcome, Election, ElectionCheckpoint
from ballot.engine.errors import ElectionRejection, RejectionKind
from ballot.engine.registry import DelegationPath, VoterRegistry

__all__ = [
    "DelegationOutcome",
    "DelegationPath",
    "Election",
    "ElectionCheckpoint",
    "ElectionRejection",
    "RejectionKind",
    "VoterRegistry",
]
