"""Quote Cache entry point."""

from __future__ import annotations

import logging
import os

import certifi
import uvicorn

# Fix SSL cert resolution for curl_cffi (used by Scrapling)
os.environ.setdefault("CURL_CA_BUNDLE", certifi.where())
os.environ.setdefault("SSL_CERT_FILE", certifi.where())

from api.app import Broadcaster, create_app, outcome_event  # noqa: E402
from config.settings import settings  # noqa: E402
from core.coordinator import RefreshCoordinator  # noqa: E402
from core.models import RefreshOutcome  # noqa: E402
from core.rate_limiter import ManualRefreshLimiter  # noqa: E402
from data.cache_store import JsonCacheStore  # noqa: E402
from data.database import dispose_db, init_db  # noqa: E402
from data.run_log import record_run  # noqa: E402
from scrapers.registry import build_extractors  # noqa: E402
from scrapers.scheduler import RefreshScheduler  # noqa: E402

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
log = logging.getLogger(__name__)

broadcaster = Broadcaster()


async def on_outcome(outcome: RefreshOutcome) -> None:
    await broadcaster.broadcast(outcome_event(outcome))
    await record_run(outcome)


coordinator = RefreshCoordinator(
    build_extractors(settings),
    JsonCacheStore(settings.CACHE_DIR, settings.cache_paths()),
    ManualRefreshLimiter(settings.MANUAL_REFRESH_INTERVAL_SECONDS),
    on_outcome=on_outcome,
)
scheduler = RefreshScheduler(coordinator, settings.REFRESH_INTERVAL_SECONDS)

app = create_app(
    coordinator,
    scheduler=scheduler,
    broadcaster=broadcaster,
    cors_origins=settings.cors_origins(),
)


@app.on_event("startup")
async def on_startup() -> None:
    log.info("Initialising database…")
    await init_db()

    log.info("Starting refresh scheduler…")
    scheduler.start()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    scheduler.stop()
    log.info("Refresh scheduler stopped.")
    await dispose_db()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=False,
    )
