import asyncio
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Must be set before config.settings is imported anywhere
_TMP = tempfile.mkdtemp(prefix="quote-cache-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP}/runs.db"
os.environ["CACHE_DIR"] = os.path.join(_TMP, "cache")

from core.coordinator import RefreshCoordinator  # noqa: E402
from core.errors import ExtractionError  # noqa: E402
from core.rate_limiter import ManualRefreshLimiter  # noqa: E402
from data.cache_store import JsonCacheStore  # noqa: E402
from scrapers.base import BaseExtractor  # noqa: E402

T0 = datetime(2026, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


class ManualClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def set_ms(self, ms: int) -> None:
        """Jump to T0 + ms."""
        self.now = T0 + timedelta(milliseconds=ms)

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class StubExtractor(BaseExtractor):
    """Scripted extractor: returns queued results, or fails when told to."""

    def __init__(
        self,
        source_id: str = "usd",
        kind: str = "currency",
        fields: dict[str, str] | None = None,
    ) -> None:
        super().__init__(source_id, timeout_seconds=5)
        self.kind = kind
        self.fields = fields or {"currency": "USD", "exchangeRate": "1,320.50"}
        self.fail_with: str | None = None
        self.gate: asyncio.Event | None = None
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def extract(self) -> dict[str, str]:
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.fail_with:
                raise ExtractionError(self.fail_with)
            return dict(self.fields)
        finally:
            self.active -= 1

    def _fetch(self) -> dict[str, str]:
        raise NotImplementedError


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def extractor() -> StubExtractor:
    return StubExtractor()


@pytest.fixture()
def store(tmp_path) -> JsonCacheStore:
    return JsonCacheStore(tmp_path / "cache")


@pytest.fixture()
def limiter() -> ManualRefreshLimiter:
    return ManualRefreshLimiter(600)


@pytest.fixture()
def coordinator(extractor, store, limiter, clock) -> RefreshCoordinator:
    return RefreshCoordinator({"usd": extractor}, store, limiter, clock=clock)
