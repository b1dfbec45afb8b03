from __future__ import annotations

from fastapi import APIRouter, Query, Request

from core.models import format_timestamp
from data.database import get_session
from data.repositories import RefreshRunRepository

router = APIRouter(prefix="/api/sources", tags=["sources"])


@router.get("")
async def list_sources(request: Request):
    """Configured sources with their cached timestamp and manual-refresh window."""
    coordinator = request.app.state.coordinator
    items = []
    for source_id in coordinator.sources:
        record = await coordinator.cached(source_id)
        next_manual = coordinator.limiter.next_allowed_at(source_id)
        items.append(
            {
                "source": source_id,
                "kind": coordinator.extractor(source_id).kind,
                "datetime": format_timestamp(record.captured_at) if record else None,
                "refreshing": coordinator.in_flight(source_id),
                "nextManualRefresh": format_timestamp(next_manual)
                if next_manual
                else None,
            }
        )
    return items


@router.get("/stats")
async def source_stats():
    async with get_session() as session:
        repo = RefreshRunRepository(session)
        return await repo.source_stats()


@router.get("/runs")
async def recent_runs(
    source: str | None = None,
    limit: int = Query(20, ge=1, le=100),
):
    async with get_session() as session:
        repo = RefreshRunRepository(session)
        runs = await repo.recent_runs(source=source, limit=limit)
        return [
            {
                "id": r.id,
                "source": r.source,
                "trigger": r.trigger,
                "status": r.status,
                "error_message": r.error_message,
                "duration_seconds": r.duration_seconds,
                "started_at": r.started_at.isoformat() if r.started_at else None,
                "finished_at": r.finished_at.isoformat() if r.finished_at else None,
            }
            for r in runs
        ]
