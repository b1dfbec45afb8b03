"""Exchange-rate extractor for a bank's browser-rendered rate table."""

from __future__ import annotations

import logging

from scrapling.fetchers import DynamicFetcher

from core.errors import ExtractionError
from scrapers.base import BaseExtractor

log = logging.getLogger(__name__)


def pick_currency_row(
    rows: list[list[str]], currency: str, rate_column: int
) -> dict[str, str]:
    """Find the row for ``currency`` and return its label and rate.

    The first cell holds a label such as "미국 USD"; the rate sits in
    ``rate_column``.
    """
    for cells in rows:
        if not cells or currency not in cells[0]:
            continue
        if rate_column >= len(cells):
            raise ExtractionError(
                f"{currency} row has {len(cells)} cells, expected column {rate_column}"
            )
        rate = cells[rate_column].strip()
        if not rate:
            raise ExtractionError(f"{currency} row has an empty rate cell")
        return {"currency": cells[0].strip(), "exchangeRate": rate}
    raise ExtractionError(f"No {currency} row in rate table ({len(rows)} rows)")


class ExchangeRateExtractor(BaseExtractor):
    kind = "currency"

    def __init__(
        self,
        currency: str,
        *,
        url: str,
        row_selector: str,
        rate_column: int,
        page_timeout_ms: int = 15000,
        settle_ms: int = 5000,
        timeout_seconds: float = 60.0,
    ) -> None:
        super().__init__(currency.lower(), timeout_seconds=timeout_seconds)
        self.currency = currency.upper()
        self._url = url
        self._row_selector = row_selector
        self._rate_column = rate_column
        self._page_timeout_ms = page_timeout_ms
        self._settle_ms = settle_ms

    def _fetch(self) -> dict[str, str]:
        page = DynamicFetcher.fetch(
            self._url,
            headless=True,
            timeout=self._page_timeout_ms,
            wait=self._settle_ms,
            wait_selector=self._row_selector,
            wait_selector_state="attached",
        )
        if page.status != 200:
            raise ExtractionError(f"HTTP {page.status} from {self._url}")

        rows = [
            [td.get_all_text(strip=True) for td in row.css("td")]
            for row in page.css(self._row_selector)
        ]
        log.debug("Rate table for %s: %d rows", self.currency, len(rows))
        return pick_currency_row(rows, self.currency, self._rate_column)
