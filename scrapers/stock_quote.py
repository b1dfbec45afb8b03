from __future__ import annotations

from scrapling.fetchers import Fetcher

from core.errors import ExtractionError
from scrapers.base import BaseExtractor


class StockQuoteExtractor(BaseExtractor):
    """Reads price and daily change for one ticker from a quote page."""

    kind = "ticker"

    def __init__(
        self,
        ticker: str,
        *,
        url_template: str,
        price_selector: str,
        change_selector: str,
        fetch_timeout_seconds: float = 30.0,
        timeout_seconds: float = 60.0,
    ) -> None:
        super().__init__(ticker.lower(), timeout_seconds=timeout_seconds)
        self.ticker = ticker.upper()
        self._url = url_template.format(ticker=self.ticker)
        self._price_selector = price_selector
        self._change_selector = change_selector
        self._fetch_timeout = fetch_timeout_seconds

    def _fetch(self) -> dict[str, str]:
        page = Fetcher.get(
            self._url,
            stealthy_headers=True,
            follow_redirects=True,
            timeout=self._fetch_timeout,
        )
        if page.status != 200:
            raise ExtractionError(f"HTTP {page.status} from {self._url}")

        price_el = page.css(self._price_selector)
        if not price_el:
            raise ExtractionError(
                f"{self.ticker}: price element {self._price_selector!r} not found"
            )
        change_el = page.css(self._change_selector)
        if not change_el:
            raise ExtractionError(
                f"{self.ticker}: change element {self._change_selector!r} not found"
            )

        return {
            "ticker": self.ticker,
            "price": price_el[0].get_all_text(strip=True),
            "changePercent": change_el[0].get_all_text(strip=True),
        }
