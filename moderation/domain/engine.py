"""Moderation engine: a synchronous phase machine over timed conversation events."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from .dominance import dominance_score
from .models import (
    CHECK_IN,
    IMBALANCE_DETECTED,
    MONITORING,
    NUDGE,
    PHASES,
    REFLECTION_PAUSE,
    STRUCTURED_TURN_TAKING,
    AddSpeaker,
    CheckIn,
    EngineContext,
    EngineEvent,
    EngineSnapshot,
    ForceState,
    NextTurn,
    PauseDone,
    Phase,
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
    snapshot_of,
)

logger = logging.getLogger(__name__)

# Fixed protocol timings, in simulated seconds.
GRACE_PERIOD_SECONDS = 15
MONOLOGUE_LIMIT_SECONDS = 15
IMBALANCE_PHASE_SECONDS = 15
REFLECTION_PAUSE_SECONDS = 20
CHECK_IN_SECONDS = 20

# Phases in which the imbalance flag is always off.
_FLAG_SUPPRESSED = frozenset({NUDGE, STRUCTURED_TURN_TAKING, REFLECTION_PAUSE, CHECK_IN})

_OVERRIDE_TYPES: Dict[str, type] = {
    "auto_mode": bool,
    "quiet_mode": bool,
    "imbalance_score_threshold": float,
    "imbalance_hold_seconds": float,
    "nudge_hold_seconds": float,
}


def _validate_overrides(overrides: Dict[str, Any]) -> Dict[str, Any]:
    # turn_hold_seconds is not overridable; the per-turn budget is fixed.
    for key, value in overrides.items():
        _require(key in _OVERRIDE_TYPES, f"unknown engine setting: {key}")
        if _OVERRIDE_TYPES[key] is bool:
            _require(isinstance(value, bool), f"{key} must be bool")
        else:
            _require(
                isinstance(value, (int, float)) and not isinstance(value, bool),
                f"{key} must be a number",
            )
            _require(value >= 0, f"{key} must be >= 0")
    return dict(overrides)


class ModerationEngine:
    """Owns one conversation's phase and metrics context.

    Events are applied one at a time through ``send``; readers only ever see
    copies produced by ``snapshot``. All timing is logical and advances only
    through ``Tick`` events.
    """

    def __init__(
        self,
        speakers: Iterable[str] = (),
        overrides: Optional[Dict[str, Any]] = None,
    ) -> None:
        settings = _validate_overrides(overrides or {})
        ordered = list(dict.fromkeys(speakers))
        self._phase: Phase = MONITORING
        self._ctx = EngineContext(
            speakers=ordered,
            talk_time={name: 0 for name in ordered},
        )
        for key, value in settings.items():
            setattr(self._ctx, key, value)

    @property
    def phase(self) -> Phase:
        return self._phase

    def snapshot(self) -> EngineSnapshot:
        return snapshot_of(self._phase, self._ctx)

    # send: apply one event, then refresh derived metrics.
    def send(self, event: EngineEvent) -> None:
        ctx = self._ctx
        if isinstance(event, Tick):
            self._tick(event.seconds)
            return
        if isinstance(event, SpeakerSet):
            self._set_speaker(event.name)
        elif isinstance(event, Silence):
            ctx.active_speaker = None
            ctx.current_monologue_seconds = 0
        elif isinstance(event, NextTurn):
            self._next_turn()
        elif isinstance(event, SetQuietSpeaker):
            ctx.quiet_speaker = event.name
        elif isinstance(event, SetAutoMode):
            ctx.auto_mode = bool(event.enabled)
        elif isinstance(event, SetQuietMode):
            ctx.quiet_mode = bool(event.enabled)
        elif isinstance(event, AddSpeaker):
            self._add_speaker(event.name)
        elif isinstance(event, RemoveSpeaker):
            self._remove_speaker(event.name)
        elif isinstance(event, SetTalkTime):
            self._set_talk_time(event.name, event.seconds)
        elif isinstance(event, SetSilence):
            ctx.silence_seconds = max(0, event.seconds)
        elif isinstance(event, ForceState):
            if event.phase not in PHASES:
                raise ValidationError(f"unknown phase: {event.phase}")
            self._set_phase(event.phase)
        elif isinstance(event, (TurnsComplete, PauseDone, CheckIn)):
            logger.debug("reserved event ignored: %s", type(event).__name__)
        else:
            raise TypeError(f"not an engine event: {event!r}")
        self._update_metrics()

    def _tick(self, seconds: float) -> None:
        # The clock never runs backwards.
        dt = max(0, seconds)
        ctx = self._ctx
        ctx.total_seconds += dt
        active = ctx.active_speaker
        if active is not None and active in ctx.talk_time:
            ctx.talk_time[active] += dt
            ctx.total_talk_time += dt
            ctx.current_monologue_seconds += dt
            ctx.silence_seconds = 0
        else:
            ctx.silence_seconds += dt
            ctx.current_monologue_seconds = 0
        self._update_metrics()
        if ctx.auto_mode:
            self._auto_advance()

    def _set_speaker(self, name: str) -> None:
        """Give ``name`` the floor.

        Any name other than the current speaker ends the running monologue,
        even when structured turn-taking then refuses a name outside the turn
        order.
        """
        ctx = self._ctx
        if name != ctx.active_speaker:
            ctx.current_monologue_seconds = 0
        if self._phase == STRUCTURED_TURN_TAKING:
            if name not in ctx.turn_order:
                logger.debug("speaker %s is not in the turn order; ignored", name)
                return
            ctx.turn_index = ctx.turn_order.index(name)
            ctx.active_speaker = name
            ctx.turn_since = ctx.total_seconds
            return
        ctx.active_speaker = name

    def _add_speaker(self, name: str) -> None:
        ctx = self._ctx
        if name in ctx.talk_time:
            return
        ctx.speakers.append(name)
        ctx.talk_time[name] = 0

    def _remove_speaker(self, name: str) -> None:
        ctx = self._ctx
        if name in ctx.speakers:
            ctx.speakers.remove(name)
        removed = ctx.talk_time.pop(name, 0)
        ctx.total_talk_time = max(0, ctx.total_talk_time - removed)
        if ctx.quiet_speaker == name:
            ctx.quiet_speaker = None
        if ctx.active_speaker == name:
            ctx.active_speaker = None
            ctx.current_monologue_seconds = 0
        if self._phase == STRUCTURED_TURN_TAKING and name in ctx.turn_order:
            self._drop_from_turn_order(name)

    def _drop_from_turn_order(self, name: str) -> None:
        # A departed speaker gives up their slot; the floor passes on if it was theirs.
        ctx = self._ctx
        position = ctx.turn_order.index(name)
        del ctx.turn_order[position]
        if position < ctx.turn_index:
            ctx.turn_index -= 1
        elif position == ctx.turn_index:
            if ctx.turn_index < len(ctx.turn_order):
                ctx.active_speaker = ctx.turn_order[ctx.turn_index]
                ctx.turn_since = ctx.total_seconds
                ctx.current_monologue_seconds = 0
            else:
                self._set_phase(REFLECTION_PAUSE)

    def _set_talk_time(self, name: str, seconds: float) -> None:
        ctx = self._ctx
        if name not in ctx.talk_time:
            logger.debug("talk time for unknown speaker %s ignored", name)
            return
        value = max(0, seconds)
        delta = value - ctx.talk_time[name]
        ctx.talk_time[name] = value
        ctx.total_talk_time = max(0, ctx.total_talk_time + delta)

    # _next_turn: hand the floor to the next speaker, or close the round.
    def _next_turn(self) -> None:
        if self._phase != STRUCTURED_TURN_TAKING:
            logger.debug("next turn ignored outside structured turn-taking")
            return
        ctx = self._ctx
        ctx.turn_index += 1
        if ctx.turn_index >= len(ctx.turn_order):
            self._set_phase(REFLECTION_PAUSE)
            return
        ctx.active_speaker = ctx.turn_order[ctx.turn_index]
        ctx.turn_since = ctx.total_seconds
        ctx.current_monologue_seconds = 0

    def _set_phase(self, next_phase: Phase) -> None:
        previous = self._phase
        if previous == next_phase:
            return
        self._phase = next_phase
        ctx = self._ctx

        if next_phase == MONITORING:
            if previous == CHECK_IN:
                # A completed cycle starts the conversation afresh.
                ctx.talk_time = {name: 0 for name in ctx.speakers}
                ctx.total_seconds = 0
                ctx.total_talk_time = 0
                ctx.current_monologue_seconds = 0
                ctx.silence_seconds = 0
                ctx.dominance_score = 0.0
                ctx.imbalance_flag = False
            ctx.active_speaker = None
        elif next_phase == STRUCTURED_TURN_TAKING:
            ctx.turn_order = list(ctx.speakers)
            ctx.turn_index = 0
            ctx.active_speaker = ctx.turn_order[0] if ctx.turn_order else None
            ctx.turn_since = ctx.total_seconds
            ctx.current_monologue_seconds = 0
        elif next_phase == REFLECTION_PAUSE:
            ctx.active_speaker = None
            ctx.silence_seconds = 0
            ctx.current_monologue_seconds = 0
        elif next_phase == CHECK_IN:
            ctx.active_speaker = None
            ctx.current_monologue_seconds = 0

        # The hold timer always restarts in the new phase.
        ctx.imbalance_since = None
        ctx.state_since = ctx.total_seconds
        logger.info("phase %s -> %s at t=%s", previous, next_phase, ctx.total_seconds)
        self._update_metrics()

    def _update_metrics(self) -> None:
        ctx = self._ctx
        ctx.dominance_score = dominance_score(ctx.talk_time, ctx.speakers, ctx.total_talk_time)
        if (
            self._phase in _FLAG_SUPPRESSED
            or ctx.quiet_mode
            or ctx.total_seconds < GRACE_PERIOD_SECONDS
        ):
            ctx.imbalance_flag = False
        else:
            ctx.imbalance_flag = (
                ctx.dominance_score >= ctx.imbalance_score_threshold
                or ctx.current_monologue_seconds >= MONOLOGUE_LIMIT_SECONDS
            )
        if not ctx.imbalance_flag:
            ctx.imbalance_since = None
        elif ctx.imbalance_since is None:
            ctx.imbalance_since = ctx.total_seconds

    def _auto_advance(self) -> None:
        ctx = self._ctx
        now = ctx.total_seconds
        in_phase = now - (ctx.state_since or 0)

        if self._phase == MONITORING:
            if (
                not ctx.quiet_mode
                and ctx.imbalance_since is not None
                and now - ctx.imbalance_since >= ctx.imbalance_hold_seconds
            ):
                self._set_phase(IMBALANCE_DETECTED)
        elif self._phase == IMBALANCE_DETECTED:
            if in_phase >= IMBALANCE_PHASE_SECONDS:
                self._set_phase(NUDGE)
        elif self._phase == NUDGE:
            if in_phase >= ctx.nudge_hold_seconds:
                self._set_phase(STRUCTURED_TURN_TAKING)
        elif self._phase == STRUCTURED_TURN_TAKING:
            turn_elapsed = now - (ctx.turn_since or 0)
            if ctx.turn_order and turn_elapsed >= ctx.turn_hold_seconds:
                self._next_turn()
        elif self._phase == REFLECTION_PAUSE:
            if in_phase >= REFLECTION_PAUSE_SECONDS:
                self._set_phase(CHECK_IN)
        elif self._phase == CHECK_IN:
            if in_phase >= CHECK_IN_SECONDS:
                self._set_phase(MONITORING)
