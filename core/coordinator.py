"""Refresh coordinator: every extraction goes through here."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from core.errors import CacheWriteError, ExtractionError, RateLimitError, UnknownSourceError
from core.models import (
    Clock,
    QuoteRecord,
    RefreshFailed,
    RefreshOutcome,
    RefreshRateLimited,
    RefreshSuccess,
    RefreshTrigger,
    utc_now,
)
from core.rate_limiter import ManualRefreshLimiter
from data.cache_store import JsonCacheStore
from scrapers.base import BaseExtractor

log = logging.getLogger(__name__)

OutcomeObserver = Callable[[RefreshOutcome], Awaitable[None]]


class RefreshCoordinator:
    """Runs extractions, writes the cache and arbitrates concurrent refreshes.

    At most one extraction per source is in flight. A refresh that arrives
    while another is running for the same source waits on that attempt and
    gets its outcome instead of starting a second one. Manual refreshes are
    checked against the limiter first; scheduled ones are not.
    """

    def __init__(
        self,
        extractors: dict[str, BaseExtractor],
        store: JsonCacheStore,
        limiter: ManualRefreshLimiter,
        *,
        clock: Clock = utc_now,
        on_outcome: OutcomeObserver | None = None,
    ) -> None:
        self._extractors = dict(extractors)
        self._store = store
        self._limiter = limiter
        self._clock = clock
        self._on_outcome = on_outcome
        self._in_flight: dict[str, asyncio.Task[RefreshOutcome]] = {}

    @property
    def sources(self) -> list[str]:
        return list(self._extractors)

    @property
    def limiter(self) -> ManualRefreshLimiter:
        return self._limiter

    def extractor(self, source_id: str) -> BaseExtractor:
        try:
            return self._extractors[source_id]
        except KeyError:
            raise UnknownSourceError(source_id) from None

    def in_flight(self, source_id: str) -> bool:
        task = self._in_flight.get(source_id)
        if task is not None and not task.done():
            return True
        # a timed-out fetch may still be running in its worker thread
        return self.extractor(source_id).busy

    async def cached(self, source_id: str) -> QuoteRecord | None:
        self.extractor(source_id)
        return await asyncio.to_thread(self._store.get, source_id)

    async def refresh(
        self, source_id: str, trigger: RefreshTrigger
    ) -> RefreshOutcome:
        extractor = self.extractor(source_id)

        if trigger is RefreshTrigger.MANUAL:
            try:
                self._limiter.acquire(source_id, self._clock())
            except RateLimitError as e:
                log.info(
                    "Manual refresh of %s rate limited (%ds left)",
                    source_id, e.seconds_left,
                )
                return RefreshRateLimited(source_id, trigger, e.seconds_left)

        task = self._in_flight.get(source_id)
        if task is None or task.done():
            task = asyncio.create_task(self._attempt(extractor, trigger))
            self._in_flight[source_id] = task
            task.add_done_callback(lambda t: self._forget(source_id, t))
        else:
            log.info("Refresh of %s already running; joining it", source_id)

        return await asyncio.shield(task)

    def _forget(self, source_id: str, task: asyncio.Task) -> None:
        if self._in_flight.get(source_id) is task:
            del self._in_flight[source_id]

    async def _attempt(
        self, extractor: BaseExtractor, trigger: RefreshTrigger
    ) -> RefreshOutcome:
        source_id = extractor.source_id
        log.info("Starting %s refresh: %s", trigger.value, source_id)
        start = time.monotonic()

        outcome: RefreshOutcome
        try:
            fields = await extractor.extract()
            record = QuoteRecord(
                source_id=source_id,
                fields=dict(fields),
                # persisted timestamps have second precision
                captured_at=self._clock().replace(microsecond=0),
            )
            await asyncio.to_thread(self._store.put, record)
        except (ExtractionError, CacheWriteError) as e:
            outcome = RefreshFailed(
                source_id, trigger, str(e), time.monotonic() - start
            )
        except Exception as e:
            log.exception("Unexpected error refreshing %s", source_id)
            outcome = RefreshFailed(
                source_id, trigger, f"{type(e).__name__}: {e}", time.monotonic() - start
            )
        else:
            outcome = RefreshSuccess(
                source_id, trigger, record, time.monotonic() - start
            )

        if isinstance(outcome, RefreshSuccess):
            log.info(
                "Finished refresh: %s | %s | %.1fs",
                source_id, outcome.record.to_dict()["datetime"], outcome.duration_seconds,
            )
        else:
            log.warning("Refresh of %s failed: %s", source_id, outcome.error)

        await self._notify(outcome)
        return outcome

    async def _notify(self, outcome: RefreshOutcome) -> None:
        if self._on_outcome is None:
            return
        try:
            await self._on_outcome(outcome)
        except Exception as e:
            log.error("Failed to report refresh outcome for %s: %s", outcome.source_id, e)
