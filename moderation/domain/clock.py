"""Async clock that feeds periodic ticks into a session."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .models import Tick
from .session import ModerationSession

logger = logging.getLogger(__name__)


class SessionClock:
    def __init__(self, session: ModerationSession, interval_seconds: float = 1.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.session = session
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        # Must be called from a running event loop; returns False if already running.
        if self.running:
            return False
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("session clock started (interval=%ss)", self.interval_seconds)
        return True

    async def stop(self) -> bool:
        if not self.running:
            self._task = None
            return False
        task = self._task
        self._task = None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("session clock stopped")
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.session.apply(Tick(seconds=self.interval_seconds))
