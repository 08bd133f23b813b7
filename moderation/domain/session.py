"""Session wrapper: input limits, pause toggling, and transition history."""

from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Optional

from .engine import ModerationEngine
from .models import (
    MONITORING,
    REFLECTION_PAUSE,
    AddSpeaker,
    EngineEvent,
    EngineSnapshot,
    ForceState,
    Phase,
    _require,
)
from .validators import event_from_dict


class ModerationSession:
    """Single entry point to one engine.

    Callers may run on different threads (request workers, the session clock),
    so every read and write of the engine happens under ``_lock``; one event's
    send, metrics refresh and phase advance form one critical section.
    """

    def __init__(
        self,
        speakers: Iterable[str] = (),
        overrides: Optional[Dict[str, Any]] = None,
        max_speakers: int = 10,
        history_limit: int = 200,
    ) -> None:
        names = [_clean_name(name) for name in speakers]
        _require(len(set(names)) <= max_speakers, f"at most {max_speakers} speakers allowed")
        self.max_speakers = max_speakers
        self.history_limit = history_limit
        self._engine = ModerationEngine(names, overrides)
        self._lock = threading.RLock()
        self._resume_phase: Optional[Phase] = None
        self._history: List[Dict[str, Any]] = []

    @property
    def history(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._history)

    def snapshot(self) -> EngineSnapshot:
        with self._lock:
            return self._engine.snapshot()

    # apply: forward one event to the engine and record any phase change.
    def apply(self, event: EngineEvent) -> EngineSnapshot:
        with self._lock:
            if isinstance(event, AddSpeaker):
                event = self._checked_addition(event)
            before = self._engine.phase
            self._engine.send(event)
            after = self._engine.phase
            snapshot = self._engine.snapshot()
            if before != after:
                self._record(before, after, snapshot.context.total_seconds)
            return snapshot

    def apply_dict(self, data: Dict[str, Any]) -> EngineSnapshot:
        return self.apply(event_from_dict(data))

    # toggle_pause: enter a reflection pause, or leave it for the phase it interrupted.
    def toggle_pause(self) -> EngineSnapshot:
        with self._lock:
            if self._engine.phase == REFLECTION_PAUSE:
                target = self._resume_phase or MONITORING
                self._resume_phase = None
                return self.apply(ForceState(phase=target))
            self._resume_phase = self._engine.phase
            return self.apply(ForceState(phase=REFLECTION_PAUSE))

    def _checked_addition(self, event: AddSpeaker) -> AddSpeaker:
        name = _clean_name(event.name)
        speakers = self._engine.snapshot().context.speakers
        if name not in speakers:
            _require(
                len(speakers) < self.max_speakers,
                f"at most {self.max_speakers} speakers allowed",
            )
        return AddSpeaker(name=name)

    def _record(self, before: Phase, after: Phase, at: float) -> None:
        self._history.append({"from": before, "to": after, "at": at})
        if len(self._history) > self.history_limit:
            del self._history[: len(self._history) - self.history_limit]


def _clean_name(name: str) -> str:
    _require(isinstance(name, str), "speaker name must be string")
    cleaned = name.strip()
    _require(bool(cleaned), "speaker name must be non-empty")
    return cleaned
