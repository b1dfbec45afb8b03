from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from core.errors import UnknownSourceError
from core.models import RefreshSuccess

router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


@router.post("/run/{source}")
async def trigger_refresh(source: str, request: Request):
    scheduler = request.app.state.scheduler
    if scheduler is None:
        raise HTTPException(503, "Scheduler not initialized")

    try:
        outcome = await scheduler.run_source(source.lower())
    except UnknownSourceError as e:
        raise HTTPException(404, str(e)) from e

    body = {
        "source": outcome.source_id,
        "status": outcome.status,
        "duration_seconds": round(outcome.duration_seconds, 2),
    }
    if isinstance(outcome, RefreshSuccess):
        body["data"] = outcome.record.to_dict()
    else:
        body["error"] = outcome.error
    return body


@router.get("/status")
async def scheduler_status(request: Request):
    scheduler = request.app.state.scheduler
    if scheduler is None:
        return {"running": False, "jobs": []}
    return scheduler.get_status()
