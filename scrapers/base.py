from __future__ import annotations

import asyncio
import threading
from abc import ABC, abstractmethod

from core.errors import ExtractionError


class BaseExtractor(ABC):
    """Pulls the current fields for one source from its external page."""

    source_id: str
    kind: str  # "currency" or "ticker"

    def __init__(self, source_id: str, timeout_seconds: float = 60.0) -> None:
        self.source_id = source_id
        self._timeout = timeout_seconds
        # Held by the worker thread for the whole fetch, including after a timeout
        self._fetch_lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._fetch_lock.locked()

    async def extract(self) -> dict[str, str]:
        """Run one extraction, bounded by the extractor timeout.

        Raises ExtractionError for every kind of failure, including timeouts.
        A timed-out fetch keeps its worker thread; until that thread returns,
        further extractions fail instead of starting a second fetch.
        """
        if not self._fetch_lock.acquire(blocking=False):
            raise ExtractionError(f"{self.source_id}: previous fetch still running")

        try:
            fetch = asyncio.ensure_future(asyncio.to_thread(self._locked_fetch))
            # consume the result of a fetch nobody waits for any more
            fetch.add_done_callback(lambda f: f.cancelled() or f.exception())
        except BaseException:
            self._fetch_lock.release()
            raise

        try:
            fields = await asyncio.wait_for(asyncio.shield(fetch), timeout=self._timeout)
        except ExtractionError:
            raise
        except asyncio.TimeoutError as e:
            raise ExtractionError(
                f"{self.source_id}: timed out after {self._timeout:g}s"
            ) from e
        except Exception as e:
            raise ExtractionError(f"{self.source_id}: {e}") from e

        missing = [k for k, v in fields.items() if not v]
        if missing:
            raise ExtractionError(
                f"{self.source_id}: empty field(s) {', '.join(missing)}"
            )
        return fields

    def _locked_fetch(self) -> dict[str, str]:
        try:
            return self._fetch()
        finally:
            self._fetch_lock.release()

    @abstractmethod
    def _fetch(self) -> dict[str, str]:
        """Blocking fetch and parse; runs in a worker thread."""
        ...
