"""Tests for election models: proposal labels and voter states."""

import pytest

from ballot.models.election import (
    MAX_PROPOSAL_NAME_BYTES,
    Proposal,
    Voter,
    VoterState,
    validate_proposal_name,
)


class TestProposalName:
    def test_short_name_accepted(self) -> None:
        assert Proposal(name="Proposal 1").vote_count == 0

    def test_name_at_limit_accepted(self) -> None:
        name = "x" * MAX_PROPOSAL_NAME_BYTES
        assert validate_proposal_name(name) == name

    def test_name_over_limit_rejected(self) -> None:
        with pytest.raises(ValueError, match="limit is 31"):
            Proposal(name="x" * 32)

    def test_limit_counts_utf8_bytes(self) -> None:
        # 16 two-byte characters = 32 bytes.
        with pytest.raises(ValueError):
            validate_proposal_name("é" * 16)

    def test_non_string_rejected(self) -> None:
        with pytest.raises(ValueError, match="string"):
            validate_proposal_name(b"bytes")  # type: ignore[arg-type]

    def test_negative_count_rejected(self) -> None:
        with pytest.raises(ValueError):
            Proposal(name="A", vote_count=-1)


class TestVoterState:
    def test_default_is_unregistered(self) -> None:
        assert Voter().state == VoterState.UNREGISTERED

    def test_weighted_is_registered(self) -> None:
        voter = Voter(weight=1)
        assert voter.state == VoterState.REGISTERED
        assert voter.is_pending

    def test_voted(self) -> None:
        assert Voter(weight=1, voted=True, vote=2).state == VoterState.VOTED

    def test_delegated(self) -> None:
        voter = Voter(weight=1, voted=True, delegate="bob")
        assert voter.state == VoterState.DELEGATED
        assert not voter.is_pending

    def test_negative_weight_rejected(self) -> None:
        with pytest.raises(ValueError, match="negative"):
            Voter(weight=-1)

    def test_to_dict(self) -> None:
        assert Voter(weight=2).to_dict() == {
            "weight": 2,
            "voted": False,
            "delegate": None,
            "vote": None,
            "state": "registered",
        }
