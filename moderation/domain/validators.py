"""Wire-format parsing and validation for engine events."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List

from .models import (
    PHASES,
    AddSpeaker,
    CheckIn,
    EngineEvent,
    ForceState,
    NextTurn,
    PauseDone,
    RemoveSpeaker,
    SetAutoMode,
    SetQuietMode,
    SetQuietSpeaker,
    SetSilence,
    SetTalkTime,
    Silence,
    SpeakerSet,
    Tick,
    TurnsComplete,
    ValidationError,
    _require,
)


def _name(data: Dict[str, Any], key: str = "name") -> str:
    _require(key in data, f"event.{key} is required")
    value = data[key]
    _require(isinstance(value, str) and value != "", f"event.{key} must be non-empty string")
    return value


def _optional_name(data: Dict[str, Any]) -> str | None:
    _require("name" in data, "event.name is required")
    value = data["name"]
    if value is None:
        return None
    _require(isinstance(value, str) and value != "", "event.name must be string or null")
    return value


def _number(data: Dict[str, Any], key: str = "seconds") -> float:
    _require(key in data, f"event.{key} is required")
    value = data[key]
    _require(
        isinstance(value, (int, float)) and not isinstance(value, bool),
        f"event.{key} must be a number",
    )
    return value


def _flag(data: Dict[str, Any], key: str) -> bool:
    _require(key in data, f"event.{key} is required")
    _require(isinstance(data[key], bool), f"event.{key} must be bool")
    return data[key]


def _phase(data: Dict[str, Any]) -> str:
    # Accept both "phase" and the older "state" key.
    key = "phase" if "phase" in data else "state"
    _require(key in data, "event.phase is required")
    _require(data[key] in PHASES, "invalid event.phase")
    return data[key]


_PARSERS: Dict[str, Callable[[Dict[str, Any]], EngineEvent]] = {
    "SPEAKER_SET": lambda d: SpeakerSet(name=_name(d)),
    "SILENCE": lambda d: Silence(),
    "TICK": lambda d: Tick(seconds=_number(d)),
    "NEXT_TURN": lambda d: NextTurn(),
    "SET_QUIET_SPEAKER": lambda d: SetQuietSpeaker(name=_optional_name(d)),
    "SET_AUTO_MODE": lambda d: SetAutoMode(enabled=_flag(d, "enabled")),
    "SET_QUIET_MODE": lambda d: SetQuietMode(enabled=_flag(d, "enabled")),
    "ADD_SPEAKER": lambda d: AddSpeaker(name=_name(d)),
    "REMOVE_SPEAKER": lambda d: RemoveSpeaker(name=_name(d)),
    "SET_TALK_TIME": lambda d: SetTalkTime(name=_name(d), seconds=_number(d)),
    "SET_SILENCE": lambda d: SetSilence(seconds=_number(d)),
    "FORCE_STATE": lambda d: ForceState(phase=_phase(d)),
    "TURNS_COMPLETE": lambda d: TurnsComplete(),
    "PAUSE_DONE": lambda d: PauseDone(),
    "CHECKIN": lambda d: CheckIn(can_continue=_flag(d, "can_continue")),
}

EVENT_TYPES = tuple(_PARSERS)


def event_from_dict(data: Dict[str, Any]) -> EngineEvent:
    # Validate a JSON event object and build the matching event.
    _require(isinstance(data, dict), "event must be an object")
    _require("type" in data, "event.type is required")
    _require(isinstance(data["type"], str), "invalid event.type")
    parser = _PARSERS.get(data["type"])
    _require(parser is not None, "invalid event.type")
    return parser(data)


def event_to_dict(event: EngineEvent) -> Dict[str, Any]:
    if isinstance(event, SpeakerSet):
        return {"type": "SPEAKER_SET", "name": event.name}
    if isinstance(event, Silence):
        return {"type": "SILENCE"}
    if isinstance(event, Tick):
        return {"type": "TICK", "seconds": event.seconds}
    if isinstance(event, NextTurn):
        return {"type": "NEXT_TURN"}
    if isinstance(event, SetQuietSpeaker):
        return {"type": "SET_QUIET_SPEAKER", "name": event.name}
    if isinstance(event, SetAutoMode):
        return {"type": "SET_AUTO_MODE", "enabled": event.enabled}
    if isinstance(event, SetQuietMode):
        return {"type": "SET_QUIET_MODE", "enabled": event.enabled}
    if isinstance(event, AddSpeaker):
        return {"type": "ADD_SPEAKER", "name": event.name}
    if isinstance(event, RemoveSpeaker):
        return {"type": "REMOVE_SPEAKER", "name": event.name}
    if isinstance(event, SetTalkTime):
        return {"type": "SET_TALK_TIME", "name": event.name, "seconds": event.seconds}
    if isinstance(event, SetSilence):
        return {"type": "SET_SILENCE", "seconds": event.seconds}
    if isinstance(event, ForceState):
        return {"type": "FORCE_STATE", "phase": event.phase}
    if isinstance(event, TurnsComplete):
        return {"type": "TURNS_COMPLETE"}
    if isinstance(event, PauseDone):
        return {"type": "PAUSE_DONE"}
    if isinstance(event, CheckIn):
        return {"type": "CHECKIN", "can_continue": event.can_continue}
    raise TypeError(f"not an engine event: {event!r}")


def load_events(text: str) -> List[EngineEvent]:
    # Parse a replay file: a JSON list, or an object with an "events" list.
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError("events file is not valid JSON") from exc
    if isinstance(payload, dict):
        payload = payload.get("events")
    _require(isinstance(payload, list), "events must be a list")
    events: List[EngineEvent] = []
    for index, item in enumerate(payload):
        try:
            events.append(event_from_dict(item))
        except ValidationError as exc:
            raise ValidationError(f"event #{index}: {exc}") from exc
    return events
