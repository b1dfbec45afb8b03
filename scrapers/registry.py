from __future__ import annotations

import logging

from config.settings import Settings
from scrapers.base import BaseExtractor
from scrapers.exchange_rate import ExchangeRateExtractor
from scrapers.stock_quote import StockQuoteExtractor

log = logging.getLogger(__name__)


def build_extractors(settings: Settings) -> dict[str, BaseExtractor]:
    """One extractor per configured currency and ticker, keyed by source id."""
    extractors: dict[str, BaseExtractor] = {}

    for currency in settings.fx_currencies():
        extractor = ExchangeRateExtractor(
            currency,
            url=settings.FX_RATE_URL,
            row_selector=settings.FX_ROW_SELECTOR,
            rate_column=settings.FX_RATE_COLUMN,
            page_timeout_ms=settings.FX_PAGE_TIMEOUT_MS,
            settle_ms=settings.FX_SETTLE_MS,
            timeout_seconds=settings.EXTRACT_TIMEOUT_SECONDS,
        )
        extractors[extractor.source_id] = extractor

    for ticker in settings.stock_tickers():
        extractor = StockQuoteExtractor(
            ticker,
            url_template=settings.STOCK_URL_TEMPLATE,
            price_selector=settings.STOCK_PRICE_SELECTOR,
            change_selector=settings.STOCK_CHANGE_SELECTOR,
            fetch_timeout_seconds=settings.STOCK_FETCH_TIMEOUT_SECONDS,
            timeout_seconds=settings.EXTRACT_TIMEOUT_SECONDS,
        )
        if extractor.source_id in extractors:
            log.warning("Duplicate source id %s; keeping the first", extractor.source_id)
            continue
        extractors[extractor.source_id] = extractor

    log.info("Configured sources: %s", ", ".join(extractors) or "(none)")
    return extractors
