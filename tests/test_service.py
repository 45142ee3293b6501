"""Tests for BallotService: proves the facade reports, audits, and replays correctly."""

from pathlib import Path

import pytest

from ballot.persistence.event_log import EventKind, EventLog, EventRecord
from ballot.service import BallotService


CHAIR = "0xchair"


@pytest.fixture
def service() -> BallotService:
    return BallotService.create(CHAIR, ["A", "B", "C"])


def _enroll(service: BallotService, *voters: str) -> None:
    for v in voters:
        assert service.give_right_to_vote(CHAIR, v).success


class TestCreate:
    def test_records_creation_event(self, service: BallotService) -> None:
        events = service.event_log.events()
        assert len(events) == 1
        assert events[0].event_kind == EventKind.ELECTION_CREATED
        assert events[0].payload == {"chairperson": CHAIR, "proposals": ["A", "B", "C"]}

    def test_invalid_proposals_raise(self) -> None:
        with pytest.raises(ValueError):
            BallotService.create(CHAIR, [])

    def test_non_empty_log_rejected(self, service: BallotService) -> None:
        with pytest.raises(ValueError, match="replay"):
            BallotService.create(CHAIR, ["A"], event_log=service.event_log)


class TestTransitions:
    def test_enroll_and_vote(self, service: BallotService) -> None:
        result = service.give_right_to_vote(CHAIR, "v1")
        assert result.success
        assert result.data == {"voter": "v1", "weight": 1}

        result = service.vote("v1", 1)
        assert result.success
        assert result.data == {"proposal": 1, "weight": 1}
        assert service.get_proposal(1).vote_count == 1
        assert service.winning_proposal() == 1
        assert service.winner_name() == "B"

    def test_rejection_is_reported_not_raised(self, service: BallotService) -> None:
        result = service.give_right_to_vote("v1", "v2")
        assert not result.success
        assert result.errors == ["Only chairperson can give right to vote."]
        assert result.data == {"rejection": "not_authorized"}

    def test_rejection_records_no_event(self, service: BallotService) -> None:
        _enroll(service, "v1")
        count = service.event_log.count
        assert not service.vote("v1", 7).success
        assert not service.delegate("v1", "v1").success
        assert not service.give_right_to_vote(CHAIR, "v1").success
        assert service.event_log.count == count

    def test_blank_identity_is_a_failed_result(self, service: BallotService) -> None:
        result = service.give_right_to_vote(CHAIR, "  ")
        assert not result.success
        assert "blank" in result.errors[0]

    def test_delegation_data(self, service: BallotService) -> None:
        _enroll(service, "v1", "v2", "v3")
        service.delegate("v2", "v3")
        result = service.delegate("v1", "v2")
        assert result.success
        assert result.data == {
            "to": "v2", "delegate": "v3", "weight": 1, "resolved_vote": None,
        }

    def test_delegation_resolving_into_vote(self, service: BallotService) -> None:
        _enroll(service, "v1", "v2")
        service.vote("v2", 2)
        result = service.delegate("v1", "v2")
        assert result.data["resolved_vote"] == 2
        assert service.get_proposal(2).vote_count == 2

    def test_delegate_before_vote_scenario(self, service: BallotService) -> None:
        _enroll(service, "v1", "v2")
        assert service.delegate("v1", "v2").success
        assert service.vote("v2", 0).success
        assert service.get_proposal(0).vote_count == 2
        v1 = service.get_voter("v1")
        assert v1.voted is True
        assert v1.delegate == "v2"

    def test_event_ids_increase(self, service: BallotService) -> None:
        _enroll(service, "v1", "v2")
        ids = [e.event_id for e in service.event_log.events()]
        assert ids == ["EVT-00000001", "EVT-00000002", "EVT-00000003"]


class TestQueries:
    def test_unknown_voter_has_no_weight(self, service: BallotService) -> None:
        assert service.get_voter("0xstranger").weight == 0

    def test_unknown_proposal_is_none(self, service: BallotService) -> None:
        assert service.get_proposal(9) is None

    def test_status(self, service: BallotService) -> None:
        _enroll(service, "v1")
        service.vote("v1", 2)
        status = service.status()
        assert status["chairperson"] == CHAIR
        assert status["proposals"][2] == {"index": 2, "name": "C", "vote_count": 1}
        assert status["winning_proposal"] == 2
        assert status["winner_name"] == "C"
        assert status["voters"] == {"registered": 2, "voted": 1}
        assert status["granted_weight"] == 2
        assert status["events"] == 3
        assert status["invariant_violations"] == []


class TestReplay:
    def test_replay_reproduces_state(self, service: BallotService) -> None:
        _enroll(service, "v1", "v2", "v3")
        service.delegate("v1", "v2")
        service.vote("v3", 2)
        service.vote("v2", 0)
        service.delegate(CHAIR, "v3")

        rebuilt = BallotService.replay(service.event_log)
        assert rebuilt.status() == service.status()
        for identity in (CHAIR, "v1", "v2", "v3"):
            assert rebuilt.get_voter(identity) == service.get_voter(identity)

    def test_replay_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        service = BallotService.create(CHAIR, ["A", "B"], event_log=EventLog(storage_path=path))
        _enroll(service, "v1")
        service.vote("v1", 1)

        rebuilt = BallotService.replay(EventLog(storage_path=path))
        assert rebuilt.winner_name() == "B"

        # New events continue the id sequence in the same file.
        assert rebuilt.give_right_to_vote(CHAIR, "v2").success
        assert rebuilt.event_log.last_event.event_id == "EVT-00000004"
        assert EventLog(storage_path=path).count == 4

    def test_empty_log_rejected(self) -> None:
        with pytest.raises(ValueError, match="does not start"):
            BallotService.replay(EventLog())

    def test_rejected_event_in_log_fails(self, service: BallotService) -> None:
        _enroll(service, "v1")
        log = EventLog()
        for event in service.event_log.events():
            log.append(event)
        # Re-appending the same enrollment under a new id is invalid history.
        dup = service.event_log.events()[1]
        log.append(EventRecord.create(
            event_id="EVT-99999999",
            event_kind=dup.event_kind,
            actor_id=dup.actor_id,
            payload=dup.payload,
        ))
        with pytest.raises(ValueError, match="replay rejected"):
            BallotService.replay(log)

    def test_incomplete_payload_in_log_fails(self, service: BallotService) -> None:
        _enroll(service, "v1")
        log = EventLog()
        for event in service.event_log.events():
            log.append(event)
        # Built without create(), so the payload schema is not checked.
        log.append(EventRecord(
            event_id="EVT-99999999",
            event_kind=EventKind.VOTE_CAST,
            timestamp_utc="2026-10-17T12:00:00Z",
            actor_id="v1",
            payload={},
            event_hash="sha256:unchecked",
        ))
        with pytest.raises(ValueError, match="EVT-99999999: malformed payload"):
            BallotService.replay(log)


class TestAuditFailure:
    def test_append_failure_rolls_back_vote(
        self, service: BallotService, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        _enroll(service, "v1")
        events_before = service.event_log.count

        def broken_append(event: EventRecord) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(service.event_log, "append", broken_append)
        result = service.vote("v1", 0)
        assert not result.success
        assert "disk full" in result.errors[0]
        assert service.get_voter("v1").voted is False
        assert service.get_proposal(0).vote_count == 0
        assert service.event_log.count == events_before
        assert service.election.check_invariants() == []

        monkeypatch.undo()
        assert service.vote("v1", 0).success
        assert service.get_proposal(0).vote_count == 1
        assert service.event_log.last_event.event_id == f"EVT-{events_before + 1:08d}"

    def test_append_failure_rolls_back_delegation(
        self, service: BallotService, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        _enroll(service, "v1", "v2")
        service.vote("v2", 1)

        def broken_append(event: EventRecord) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(service.event_log, "append", broken_append)
        assert not service.delegate("v1", "v2").success
        assert service.get_voter("v1").delegate is None
        assert service.get_proposal(1).vote_count == 1

    def test_append_failure_rolls_back_enrollment(
        self, service: BallotService, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def broken_append(event: EventRecord) -> None:
            raise OSError("read-only file system")

        monkeypatch.setattr(service.event_log, "append", broken_append)
        result = service.give_right_to_vote(CHAIR, "v1")
        assert not result.success
        assert "Audit-trail failure" in result.errors[0]
        assert service.get_voter("v1").weight == 0
        assert service.election.granted_weight == 1

    def test_creation_failure_raises(self, tmp_path: Path) -> None:
        missing_dir = tmp_path / "missing" / "events.jsonl"
        with pytest.raises(ValueError, match="Audit-trail failure"):
            BallotService.create(CHAIR, ["A"], event_log=EventLog(storage_path=missing_dir))
