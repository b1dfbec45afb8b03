from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

from core.errors import RateLimitError


@dataclass(frozen=True)
class Admission:
    admitted: bool
    seconds_left: int = 0


class ManualRefreshLimiter:
    """Allows one manual refresh per source per interval.

    The window opens when a refresh is admitted, not when it succeeds, so two
    racing requests can never both get through. Scheduled refreshes never go
    through this limiter.
    """

    def __init__(self, interval_seconds: float = 600) -> None:
        self._interval = timedelta(seconds=interval_seconds)
        self._lock = threading.Lock()
        self._last_admitted: dict[str, datetime] = {}

    @property
    def interval(self) -> timedelta:
        return self._interval

    def try_admit(self, source_id: str, now: datetime) -> Admission:
        with self._lock:
            last = self._last_admitted.get(source_id)
            if last is not None:
                elapsed = now - last
                if elapsed < self._interval:
                    remaining = (self._interval - elapsed).total_seconds()
                    return Admission(admitted=False, seconds_left=math.ceil(remaining))
            self._last_admitted[source_id] = now
            return Admission(admitted=True)

    def acquire(self, source_id: str, now: datetime) -> None:
        """Like try_admit, but raises RateLimitError when denied."""
        admission = self.try_admit(source_id, now)
        if not admission.admitted:
            raise RateLimitError(admission.seconds_left)

    def last_admitted_at(self, source_id: str) -> datetime | None:
        with self._lock:
            return self._last_admitted.get(source_id)

    def next_allowed_at(self, source_id: str) -> datetime | None:
        last = self.last_admitted_at(source_id)
        return last + self._interval if last is not None else None

    def reset(self, source_id: str | None = None) -> None:
        with self._lock:
            if source_id is None:
                self._last_admitted.clear()
            else:
                self._last_admitted.pop(source_id, None)
