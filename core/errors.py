from __future__ import annotations


class QuoteCacheError(Exception):
    """Base class for every error raised by the refresh core."""


class ExtractionError(QuoteCacheError):
    """An extractor could not produce a complete set of fields."""


class RateLimitError(QuoteCacheError):
    """A manual refresh was requested inside the rate-limit window."""

    def __init__(self, seconds_left: int) -> None:
        super().__init__(f"Manual refresh allowed again in {seconds_left}s")
        self.seconds_left = seconds_left


class CacheReadError(QuoteCacheError):
    pass


class CacheWriteError(QuoteCacheError):
    pass


class UnknownSourceError(QuoteCacheError):
    def __init__(self, source_id: str) -> None:
        super().__init__(f"Unknown source: {source_id}")
        self.source_id = source_id
