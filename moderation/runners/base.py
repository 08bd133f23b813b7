"""Advisor interface for pluggable advisory-text backends."""

from __future__ import annotations

from typing import Protocol

from moderation.domain.models import EngineContext, Phase


class Advisor(Protocol):
    # Implementations return one short line of guidance and never touch the engine.
    async def advise(self, phase: Phase, context: EngineContext) -> str:
        ...
