from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Render a timestamp the way it is persisted and served.

    ISO 8601 in UTC with second precision and an explicit offset, so the
    string sorts chronologically and is still readable.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds")


def parse_timestamp(raw: str) -> datetime:
    dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class RefreshTrigger(str, enum.Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


@dataclass
class QuoteRecord:
    """The most recent successful extraction for one source."""

    source_id: str  # "usd", "aapl"
    fields: dict[str, str]  # ordered, values kept exactly as scraped
    captured_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {**self.fields, "datetime": format_timestamp(self.captured_at)}

    @classmethod
    def from_dict(cls, source_id: str, data: dict[str, Any]) -> QuoteRecord:
        if not isinstance(data, dict):
            raise ValueError("record must be a JSON object")
        payload = dict(data)
        raw_ts = payload.pop("datetime", None)
        if not isinstance(raw_ts, str):
            raise ValueError("record has no datetime")
        if not payload or not all(
            isinstance(k, str) and isinstance(v, str) and v for k, v in payload.items()
        ):
            raise ValueError("record fields must be non-empty strings")
        return cls(
            source_id=source_id,
            fields=payload,
            captured_at=parse_timestamp(raw_ts),
        )


@dataclass
class RefreshSuccess:
    source_id: str
    trigger: RefreshTrigger
    record: QuoteRecord
    duration_seconds: float = 0.0
    status: str = field(default="success", init=False)


@dataclass
class RefreshRateLimited:
    source_id: str
    trigger: RefreshTrigger
    seconds_left: int
    status: str = field(default="rate_limited", init=False)


@dataclass
class RefreshFailed:
    source_id: str
    trigger: RefreshTrigger
    error: str
    duration_seconds: float = 0.0
    status: str = field(default="failed", init=False)


RefreshOutcome = Union[RefreshSuccess, RefreshRateLimited, RefreshFailed]
