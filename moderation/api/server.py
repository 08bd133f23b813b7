"""FastAPI entrypoints for driving and observing a moderation session."""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from moderation.config import (
    get_default_speakers,
    get_history_max_transitions,
    get_max_speakers,
    get_policy_overrides,
    get_tick_interval_seconds,
)
from moderation.domain.clock import SessionClock
from moderation.domain.models import ValidationError
from moderation.domain.session import ModerationSession
from moderation.runners.base import Advisor
from moderation.runners.langchain_advisor import create_advisor


class SessionCreate(BaseModel):
    speakers: List[str] = Field(default_factory=list)
    overrides: Dict[str, Any] = Field(default_factory=dict)


def _format_sse(event_id: int, data: Dict[str, Any]) -> str:
    # Format SSE payload for snapshot streaming.
    body = json.dumps(data, ensure_ascii=False)
    return f"id: {event_id}\ndata: {body}\n\n"


async def snapshot_stream(
    read_snapshot: Callable[[], Dict[str, Any]],
    poll_seconds: float = 1.0,
    keepalive_seconds: float = 15.0,
) -> AsyncIterator[str]:
    # Yield a frame whenever the snapshot changes, with keep-alive comments in between.
    last: Optional[Dict[str, Any]] = None
    event_id = 0
    idle_cycles = 0
    keepalive_every = max(1, int(keepalive_seconds / poll_seconds))

    while True:
        current = read_snapshot()
        if current != last:
            idle_cycles = 0
            event_id += 1
            last = current
            yield _format_sse(event_id, current)
        else:
            idle_cycles += 1
            if idle_cycles % keepalive_every == 0:
                yield ": keep-alive\n\n"
        await asyncio.sleep(poll_seconds)


def _new_session(speakers: List[str], overrides: Dict[str, Any]) -> ModerationSession:
    # Settings supply the policy; request overrides win.
    merged = dict(get_policy_overrides())
    merged.update(overrides)
    return ModerationSession(
        speakers,
        merged,
        max_speakers=get_max_speakers(),
        history_limit=get_history_max_transitions(),
    )


# create_app: FastAPI factory for the moderation service.
def create_app(
    speakers: Optional[List[str]] = None,
    advisor: Optional[Advisor] = None,
    tick_interval_seconds: Optional[float] = None,
) -> FastAPI:
    app = FastAPI(title="Conversation Balance Moderator")

    # One room per process.
    initial = speakers if speakers is not None else get_default_speakers()
    try:
        app.state.session = _new_session(initial, {})
    except ValidationError as exc:
        raise RuntimeError(f"invalid session settings: {exc}") from exc
    app.state.tick_interval = (
        tick_interval_seconds if tick_interval_seconds is not None else get_tick_interval_seconds()
    )
    app.state.clock = SessionClock(app.state.session, app.state.tick_interval)
    app.state.advisor = advisor if advisor is not None else create_advisor()

    @app.post("/session")
    async def reset_session(payload: SessionCreate):
        # Replace the session; a running clock is stopped first.
        await app.state.clock.stop()
        try:
            session = _new_session(payload.speakers, payload.overrides)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        app.state.session = session
        app.state.clock = SessionClock(session, app.state.tick_interval)
        return session.snapshot().to_dict()

    @app.get("/session")
    def get_session():
        return app.state.session.snapshot().to_dict()

    @app.post("/session/events")
    def send_event(payload: Dict[str, Any]):
        # Apply one wire event and return the resulting snapshot.
        try:
            snapshot = app.state.session.apply_dict(payload)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return snapshot.to_dict()

    @app.post("/session/pause")
    def toggle_pause():
        return app.state.session.toggle_pause().to_dict()

    @app.post("/session/clock/start")
    async def start_clock():
        started = app.state.clock.start()
        return {"running": app.state.clock.running, "changed": started}

    @app.post("/session/clock/stop")
    async def stop_clock():
        stopped = await app.state.clock.stop()
        return {"running": app.state.clock.running, "changed": stopped}

    @app.get("/session/advice")
    async def get_advice():
        snapshot = app.state.session.snapshot()
        text = await app.state.advisor.advise(snapshot.phase, snapshot.context)
        return {"phase": snapshot.phase, "advice": text}

    @app.get("/session/history")
    def get_history():
        return {"transitions": app.state.session.history}

    @app.get("/session/stream")
    async def stream_snapshots(poll_ms: int = 1000):
        # Stream snapshots using Server-Sent Events (SSE) whenever they change.
        safe_poll_ms = max(200, min(int(poll_ms or 1000), 5000))

        return StreamingResponse(
            snapshot_stream(
                lambda: app.state.session.snapshot().to_dict(),
                poll_seconds=safe_poll_ms / 1000,
            ),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    return app
