from __future__ import annotations

from datetime import datetime, timedelta, timezone

from core.models import RefreshFailed, RefreshOutcome
from data.database import get_session
from data.repositories import RefreshRunRepository


async def record_run(outcome: RefreshOutcome) -> None:
    """Persist one refresh attempt; rate-limited requests never ran and are skipped."""
    if outcome.status == "rate_limited":
        return
    started_at = datetime.now(timezone.utc) - timedelta(seconds=outcome.duration_seconds)
    async with get_session() as session:
        await RefreshRunRepository(session).log_run(
            source=outcome.source_id,
            trigger=outcome.trigger.value,
            status=outcome.status,
            error_message=outcome.error if isinstance(outcome, RefreshFailed) else "",
            duration_seconds=outcome.duration_seconds,
            started_at=started_at,
        )
