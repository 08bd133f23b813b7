"""CLI entrypoints for replaying and simulating moderation sessions."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List

from moderation.config import get_history_max_transitions, get_max_speakers, get_policy_overrides
from moderation.domain.models import SpeakerSet, Tick, ValidationError
from moderation.domain.session import ModerationSession
from moderation.domain.validators import event_to_dict, load_events


def _split_speakers(raw: str) -> List[str]:
    # "A, B,C" -> ["A", "B", "C"]
    return [name.strip() for name in (raw or "").split(",") if name.strip()]


def _build_session(speakers: List[str]) -> ModerationSession:
    try:
        return ModerationSession(
            speakers,
            get_policy_overrides(),
            max_speakers=get_max_speakers(),
            history_limit=get_history_max_transitions(),
        )
    except ValidationError as exc:
        raise SystemExit(f"invalid session: {exc}") from exc


# cmd_replay: CLI handler to apply an events file.
def cmd_replay(args: argparse.Namespace) -> int:
    try:
        events = load_events(Path(args.events).read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise SystemExit(str(exc)) from exc
    session = _build_session(_split_speakers(args.speakers))
    steps = []
    for index, event in enumerate(events):
        try:
            snapshot = session.apply(event)
        except ValidationError as exc:
            raise SystemExit(f"event #{index}: {exc}") from exc
        if args.steps:
            steps.append({"event": event_to_dict(event), **snapshot.to_dict()})
    if args.steps:
        print(json.dumps({"steps": steps}, indent=2))
    else:
        print(json.dumps(session.snapshot().to_dict(), indent=2))
    return 0


# cmd_simulate: tick one dominant speaker and report phase changes.
def cmd_simulate(args: argparse.Namespace) -> int:
    speakers = _split_speakers(args.speakers)
    session = _build_session(speakers)
    if args.dominant:
        if args.dominant not in speakers:
            raise SystemExit("dominant speaker must be one of --speakers")
        session.apply(SpeakerSet(name=args.dominant))
    for _ in range(max(0, args.seconds)):
        session.apply(Tick(seconds=1))
    result = {
        "transitions": session.history,
        "final": session.snapshot().to_dict(),
    }
    print(json.dumps(result, indent=2))
    return 0


# main: CLI router.
def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="run_session")
    parser.add_argument("--log-level", default="WARNING")

    subparsers = parser.add_subparsers(dest="command", required=True)

    replay_cmd = subparsers.add_parser("replay")
    replay_cmd.add_argument("--events", required=True)
    replay_cmd.add_argument("--speakers", default="")
    replay_cmd.add_argument("--steps", action="store_true")
    replay_cmd.set_defaults(func=cmd_replay)

    simulate_cmd = subparsers.add_parser("simulate")
    simulate_cmd.add_argument("--speakers", required=True)
    simulate_cmd.add_argument("--dominant", default="")
    simulate_cmd.add_argument("--seconds", type=int, default=90)
    simulate_cmd.set_defaults(func=cmd_simulate)

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
