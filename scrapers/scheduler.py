from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from core.coordinator import RefreshCoordinator
from core.models import RefreshOutcome, RefreshSuccess, RefreshTrigger

log = logging.getLogger(__name__)


class RefreshScheduler:
    """Refreshes every source on a fixed interval, starting immediately."""

    def __init__(
        self, coordinator: RefreshCoordinator, interval_seconds: int = 3600
    ) -> None:
        self._coordinator = coordinator
        self._interval = interval_seconds
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        for source_id in self._coordinator.sources:
            self._scheduler.add_job(
                self._run_refresh,
                "interval",
                seconds=self._interval,
                args=[source_id],
                id=f"refresh_{source_id}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            # Warm the cache right away instead of waiting a full interval
            self._scheduler.add_job(
                self._run_refresh,
                "date",
                run_date=datetime.now(timezone.utc),
                args=[source_id],
                id=f"refresh_{source_id}_init",
                replace_existing=True,
            )
        self._scheduler.start()
        log.info(
            "Refresh scheduler started: %s every %ds",
            ", ".join(self._coordinator.sources) or "(no sources)",
            self._interval,
        )

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    async def run_source(self, source_id: str) -> RefreshOutcome:
        """Trigger a scheduled-style refresh now, outside the interval."""
        return await self._coordinator.refresh(source_id, RefreshTrigger.SCHEDULED)

    def get_status(self) -> dict:
        jobs = []
        for job in self._scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run": job.next_run_time.isoformat()
                    if job.next_run_time
                    else None,
                }
            )
        return {
            "running": self._scheduler.running,
            "interval_seconds": self._interval,
            "jobs": jobs,
        }

    async def _run_refresh(self, source_id: str) -> RefreshOutcome | None:
        try:
            outcome = await self._coordinator.refresh(
                source_id, RefreshTrigger.SCHEDULED
            )
        except Exception:
            log.exception("Scheduled refresh of %s crashed", source_id)
            return None

        if not isinstance(outcome, RefreshSuccess):
            log.warning(
                "Scheduled refresh of %s did not succeed (%s); next tick still scheduled",
                source_id, outcome.status,
            )
        return outcome
