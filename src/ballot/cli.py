"""Ballot CLI: command-line interface for the election ledger.

State lives in an append-only event log (<data-dir>/events.jsonl) and
is rebuilt by replay on every invocation.

Usage:
    python -m ballot.cli create --chairperson chair --proposal A --proposal B
    python -m ballot.cli give-right-to-vote --caller chair --voter alice
    python -m ballot.cli delegate --caller alice --to bob
    python -m ballot.cli vote --caller bob --proposal 1
    python -m ballot.cli get-voter --voter alice
    python -m ballot.cli winner
    python -m ballot.cli status
    python -m ballot.cli check-invariants
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from ballot.config import BallotConfig
from ballot.persistence.event_log import EventLog
from ballot.service import BallotService, ServiceResult


def _events_path(args: argparse.Namespace) -> Path:
    if args.data_dir is not None:
        return BallotConfig(data_dir=args.data_dir).events_path
    return BallotConfig.from_env().events_path


def _load_service(args: argparse.Namespace) -> BallotService:
    """Replay the stored election. Raises ValueError if there is none."""
    path = _events_path(args)
    if not path.exists():
        raise ValueError(f"No election found at {path}; run 'create' first")
    return BallotService.replay(EventLog(storage_path=path))


def _report(result: ServiceResult, message: str) -> int:
    if result.success:
        print(message)
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_create(args: argparse.Namespace) -> int:
    path = _events_path(args)
    if path.exists():
        print(f"Failed: an election already exists at {path}", file=sys.stderr)
        return 1
    path.parent.mkdir(parents=True, exist_ok=True)
    service = BallotService.create(
        args.chairperson, args.proposal, event_log=EventLog(storage_path=path),
    )
    print(
        f"Created election: chairperson {service.election.chairperson}, "
        f"{len(args.proposal)} proposals"
    )
    return 0


def cmd_give_right_to_vote(args: argparse.Namespace) -> int:
    service = _load_service(args)
    result = service.give_right_to_vote(args.caller, args.voter)
    return _report(result, f"Gave right to vote: {args.voter}")


def cmd_delegate(args: argparse.Namespace) -> int:
    service = _load_service(args)
    result = service.delegate(args.caller, args.to)
    return _report(result, f"Delegated {args.caller} -> {result.data.get('delegate')}")


def cmd_vote(args: argparse.Namespace) -> int:
    service = _load_service(args)
    result = service.vote(args.caller, args.proposal)
    return _report(result, f"Voted: {args.caller} for proposal {args.proposal}")


def cmd_get_voter(args: argparse.Namespace) -> int:
    service = _load_service(args)
    voter = service.get_voter(args.voter)
    if voter.weight == 0 and not voter.voted:
        print(f"{args.voter} is not a voter", file=sys.stderr)
        return 1
    print(f"{args.voter} {'Has voted' if voter.voted else 'Has not voted yet'}")
    if voter.delegate is not None:
        print(f"{args.voter} delegated to {voter.delegate}")
    else:
        print(f"{args.voter} voted {voter.vote}")
    print(f"{args.voter} has a voting weight of {voter.weight}")
    return 0


def cmd_winner(args: argparse.Namespace) -> int:
    service = _load_service(args)
    print(f"Winning proposal: {service.winning_proposal()} ({service.winner_name()})")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    service = _load_service(args)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_check_invariants(args: argparse.Namespace) -> int:
    service = _load_service(args)
    errors = service.election.check_invariants()
    if errors:
        for error in errors:
            print(f"Invariant violated: {error}", file=sys.stderr)
        return 1
    print("All invariants hold")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ballot",
        description="Ballot: single-election voting ledger CLI",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory holding events.jsonl (default: $BALLOT_DATA_DIR or data/)",
    )
    sub = parser.add_subparsers(dest="command")

    p_create = sub.add_parser("create", help="Create the election")
    p_create.add_argument("--chairperson", required=True, help="Chairperson identity")
    p_create.add_argument(
        "--proposal", required=True, action="append",
        help="Proposal name (repeat for each proposal, in order)",
    )

    p_right = sub.add_parser("give-right-to-vote", help="Enroll a voter (chairperson only)")
    p_right.add_argument("--caller", required=True, help="Caller identity")
    p_right.add_argument("--voter", required=True, help="Voter to enroll")

    p_del = sub.add_parser("delegate", help="Delegate your vote")
    p_del.add_argument("--caller", required=True, help="Caller identity")
    p_del.add_argument("--to", required=True, help="Delegate identity")

    p_vote = sub.add_parser("vote", help="Vote for a proposal")
    p_vote.add_argument("--caller", required=True, help="Caller identity")
    p_vote.add_argument("--proposal", required=True, type=int, help="Proposal index")

    p_voter = sub.add_parser("get-voter", help="Show whether a voter has voted")
    p_voter.add_argument("--voter", required=True, help="Voter identity")

    sub.add_parser("winner", help="Show the winning proposal")
    sub.add_parser("status", help="Show election status")
    sub.add_parser("check-invariants", help="Verify tally invariants")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "create": cmd_create,
        "give-right-to-vote": cmd_give_right_to_vote,
        "delegate": cmd_delegate,
        "vote": cmd_vote,
        "get-voter": cmd_get_voter,
        "winner": cmd_winner,
        "status": cmd_status,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
