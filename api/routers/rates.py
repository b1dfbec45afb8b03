from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from core.coordinator import RefreshCoordinator
from core.errors import UnknownSourceError
from core.models import (
    RefreshRateLimited,
    RefreshSuccess,
    RefreshTrigger,
    format_timestamp,
)

router = APIRouter(prefix="/api", tags=["rates"])


def _coordinator(request: Request) -> RefreshCoordinator:
    return request.app.state.coordinator


def _describe(coordinator: RefreshCoordinator, source_id: str) -> tuple[str, str]:
    """Label and noun for user-facing messages, e.g. ("USD", "exchange rate")."""
    extractor = coordinator.extractor(source_id)
    noun = "exchange rate" if extractor.kind == "currency" else "stock quote"
    return source_id.upper(), noun


@router.get("/{source}-rate")
async def get_rate(source: str, request: Request):
    coordinator = _coordinator(request)
    try:
        record = await coordinator.cached(source.lower())
    except UnknownSourceError as e:
        raise HTTPException(404, str(e)) from e

    if record is None:
        return JSONResponse(
            status_code=500,
            content={"status": "fail", "message": "Failed to read rate data"},
        )
    return record.to_dict()


@router.post("/{source}-rate/refresh")
async def refresh_rate(source: str, request: Request):
    coordinator = _coordinator(request)
    source_id = source.lower()
    try:
        label, noun = _describe(coordinator, source_id)
        outcome = await coordinator.refresh(source_id, RefreshTrigger.MANUAL)
    except UnknownSourceError as e:
        raise HTTPException(404, str(e)) from e

    if isinstance(outcome, RefreshRateLimited):
        return JSONResponse(
            status_code=429,
            content={
                "status": "fail",
                "message": "Please wait before refreshing again",
                "secondsLeft": outcome.seconds_left,
            },
        )
    if not isinstance(outcome, RefreshSuccess):
        return JSONResponse(
            status_code=500,
            content={"status": "fail", "message": f"Failed to fetch {noun}"},
        )

    next_available = coordinator.limiter.next_allowed_at(source_id)
    return {
        "status": "success",
        "message": f"{label} {noun} refreshed successfully",
        "data": outcome.record.to_dict(),
        "nextAvailable": format_timestamp(next_available)
        if next_available
        else None,
    }
