"""Core types for the moderation domain: phases, context, events, snapshots."""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union


Phase = Literal[
    "monitoring",
    "imbalance_detected",
    "nudge",
    "structured_turn_taking",
    "reflection_pause",
    "check_in",
]

MONITORING: Phase = "monitoring"
IMBALANCE_DETECTED: Phase = "imbalance_detected"
NUDGE: Phase = "nudge"
STRUCTURED_TURN_TAKING: Phase = "structured_turn_taking"
REFLECTION_PAUSE: Phase = "reflection_pause"
CHECK_IN: Phase = "check_in"

PHASES = (
    MONITORING,
    IMBALANCE_DETECTED,
    NUDGE,
    STRUCTURED_TURN_TAKING,
    REFLECTION_PAUSE,
    CHECK_IN,
)


class ValidationError(ValueError):
    # Raised when an event payload or engine setting fails validation.
    pass


def _require(condition: bool, message: str) -> None:
    # Minimal helper to keep validators readable.
    if not condition:
        raise ValidationError(message)


@dataclass
class EngineContext:
    speakers: List[str] = field(default_factory=list)
    active_speaker: Optional[str] = None
    quiet_speaker: Optional[str] = None
    talk_time: Dict[str, float] = field(default_factory=dict)
    total_seconds: float = 0
    silence_seconds: float = 0
    total_talk_time: float = 0
    current_monologue_seconds: float = 0

    auto_mode: bool = True
    quiet_mode: bool = False

    imbalance_score_threshold: float = 0.35
    imbalance_hold_seconds: float = 15
    nudge_hold_seconds: float = 15
    turn_hold_seconds: float = 60

    imbalance_since: Optional[float] = None
    state_since: Optional[float] = 0
    turn_since: Optional[float] = None

    turn_order: List[str] = field(default_factory=list)
    turn_index: int = 0

    dominance_score: float = 0.0
    imbalance_flag: bool = False


@dataclass(frozen=True)
class EngineSnapshot:
    phase: Phase
    context: EngineContext

    def to_dict(self) -> Dict[str, Any]:
        return {"phase": self.phase, "context": asdict(self.context)}


def snapshot_of(phase: Phase, context: EngineContext) -> EngineSnapshot:
    # Deep copy so readers can never reach engine-owned lists and dicts.
    return EngineSnapshot(phase=phase, context=copy.deepcopy(context))


# Events accepted by ModerationEngine.send.


@dataclass(frozen=True)
class SpeakerSet:
    name: str


@dataclass(frozen=True)
class Silence:
    pass


@dataclass(frozen=True)
class Tick:
    seconds: float


@dataclass(frozen=True)
class NextTurn:
    pass


@dataclass(frozen=True)
class SetQuietSpeaker:
    name: Optional[str]


@dataclass(frozen=True)
class SetAutoMode:
    enabled: bool


@dataclass(frozen=True)
class SetQuietMode:
    enabled: bool


@dataclass(frozen=True)
class AddSpeaker:
    name: str


@dataclass(frozen=True)
class RemoveSpeaker:
    name: str


@dataclass(frozen=True)
class SetTalkTime:
    name: str
    seconds: float


@dataclass(frozen=True)
class SetSilence:
    seconds: float


@dataclass(frozen=True)
class ForceState:
    phase: Phase


# Reserved tags: accepted on the wire, no engine behavior yet.
@dataclass(frozen=True)
class TurnsComplete:
    pass


@dataclass(frozen=True)
class PauseDone:
    pass


@dataclass(frozen=True)
class CheckIn:
    can_continue: bool


EngineEvent = Union[
    SpeakerSet,
    Silence,
    Tick,
    NextTurn,
    SetQuietSpeaker,
    SetAutoMode,
    SetQuietMode,
    AddSpeaker,
    RemoveSpeaker,
    SetTalkTime,
    SetSilence,
    ForceState,
    TurnsComplete,
    PauseDone,
    CheckIn,
]
