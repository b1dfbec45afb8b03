from __future__ import annotations

import asyncio
import json
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sse_starlette.sse import EventSourceResponse

from api.routers import rates, scheduler_control, sources
from core.coordinator import RefreshCoordinator
from core.models import RefreshOutcome, RefreshSuccess, format_timestamp
from scrapers.scheduler import RefreshScheduler

log = logging.getLogger(__name__)


class Broadcaster:
    """Simple in-memory SSE broadcaster."""

    def __init__(self) -> None:
        self._listeners: list[asyncio.Queue] = []

    async def broadcast(self, data: dict) -> None:
        for q in list(self._listeners):
            try:
                q.put_nowait(data)
            except asyncio.QueueFull:
                log.debug("Dropping event for a slow SSE listener")

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=50)
        self._listeners.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        if q in self._listeners:
            self._listeners.remove(q)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


def outcome_event(outcome: RefreshOutcome) -> dict:
    event = {
        "event": "refresh_complete",
        "source": outcome.source_id,
        "trigger": outcome.trigger.value,
        "status": outcome.status,
    }
    if isinstance(outcome, RefreshSuccess):
        event["datetime"] = format_timestamp(outcome.record.captured_at)
    return event


def create_app(
    coordinator: RefreshCoordinator,
    *,
    scheduler: RefreshScheduler | None = None,
    broadcaster: Broadcaster | None = None,
    cors_origins: list[str] | None = None,
) -> FastAPI:
    app = FastAPI(title="Quote Cache", version="0.1.0")
    app.state.coordinator = coordinator
    app.state.scheduler = scheduler
    app.state.broadcaster = broadcaster or Broadcaster()

    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    app.include_router(sources.router)
    app.include_router(scheduler_control.router)
    app.include_router(rates.router)

    # SSE endpoint
    @app.get("/api/events")
    async def sse_events(request: Request):
        q = app.state.broadcaster.subscribe()

        async def event_generator():
            try:
                while True:
                    if await request.is_disconnected():
                        break
                    try:
                        data = await asyncio.wait_for(q.get(), timeout=30.0)
                        yield {"event": "message", "data": json.dumps(data)}
                    except asyncio.TimeoutError:
                        yield {"event": "ping", "data": ""}
            finally:
                app.state.broadcaster.unsubscribe(q)

        return EventSourceResponse(event_generator())

    # Health check
    @app.get("/health")
    async def health():
        return {"status": "ok", "sources": coordinator.sources}

    return app
