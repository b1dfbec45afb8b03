from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Integer, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from data.schema import DBRefreshRun


class RefreshRunRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._s = session

    async def log_run(
        self,
        *,
        source: str,
        trigger: str,
        status: str,
        error_message: str,
        duration_seconds: float,
        started_at: datetime,
    ) -> None:
        run = DBRefreshRun(
            source=source,
            trigger=trigger,
            status=status,
            error_message=error_message[:500],
            duration_seconds=round(duration_seconds, 2),
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        self._s.add(run)

    async def recent_runs(
        self, *, source: str | None = None, limit: int = 20
    ) -> list[DBRefreshRun]:
        q = select(DBRefreshRun)
        if source:
            q = q.where(DBRefreshRun.source == source)
        q = q.order_by(DBRefreshRun.started_at.desc(), DBRefreshRun.id.desc()).limit(limit)
        result = await self._s.execute(q)
        return list(result.scalars().all())

    async def source_stats(self) -> list[dict]:
        """Per-source: total runs, success rate and last run time."""
        q = (
            select(
                DBRefreshRun.source,
                func.count(DBRefreshRun.id).label("total_runs"),
                func.sum(
                    func.cast(DBRefreshRun.status == "success", Integer)
                ).label("success_count"),
                func.max(DBRefreshRun.started_at).label("last_run"),
            )
            .group_by(DBRefreshRun.source)
            .order_by(DBRefreshRun.source)
        )
        rows = (await self._s.execute(q)).all()
        return [
            {
                "source": r[0],
                "total_runs": r[1],
                "success_rate": round((r[2] or 0) / max(r[1], 1) * 100, 0),
                "last_run": r[3].isoformat() if r[3] else None,
            }
            for r in rows
        ]
