from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


def _split_csv(raw: str) -> list[str]:
    return [s.strip() for s in raw.split(",") if s.strip()]


class Settings(BaseSettings):
    # Server
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "*"

    # Refresh run log
    DATABASE_URL: str = "sqlite+aiosqlite:///./quote_cache.db"

    # Cache slots
    CACHE_DIR: str = "./data/cache"
    # Per-source overrides, e.g. "usd=./rate.json,aapl=./aapl.json"
    SOURCE_CACHE_PATHS: str = ""

    # Refresh policy
    REFRESH_INTERVAL_SECONDS: int = 3600
    MANUAL_REFRESH_INTERVAL_SECONDS: int = 600
    EXTRACT_TIMEOUT_SECONDS: float = 60.0

    # Exchange rates (browser-rendered bank table)
    FX_CURRENCIES: str = "USD"
    FX_RATE_URL: str = (
        "https://www.kebhana.com/cms/rate/index.do"
        "?contentUrl=/cms/rate/wpfxd651_01i.do"
    )
    FX_ROW_SELECTOR: str = "table.tblBasic tbody tr"
    FX_RATE_COLUMN: int = 8
    FX_PAGE_TIMEOUT_MS: int = 15000
    FX_SETTLE_MS: int = 5000

    # Stock quotes (static quote page)
    STOCK_TICKERS: str = ""
    STOCK_URL_TEMPLATE: str = "https://www.google.com/finance/quote/{ticker}"
    STOCK_PRICE_SELECTOR: str = "div.YMlKec.fxKbKc"
    STOCK_CHANGE_SELECTOR: str = "div.JwB6zf"
    STOCK_FETCH_TIMEOUT_SECONDS: float = 30.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def fx_currencies(self) -> list[str]:
        return [c.upper() for c in _split_csv(self.FX_CURRENCIES)]

    def stock_tickers(self) -> list[str]:
        return [t.upper() for t in _split_csv(self.STOCK_TICKERS)]

    def cors_origins(self) -> list[str]:
        return _split_csv(self.CORS_ORIGINS)

    def cache_paths(self) -> dict[str, Path]:
        """Explicit cache slot paths keyed by source id."""
        paths: dict[str, Path] = {}
        for entry in _split_csv(self.SOURCE_CACHE_PATHS):
            source_id, sep, path = entry.partition("=")
            if not sep or not source_id.strip() or not path.strip():
                raise ValueError(f"Invalid SOURCE_CACHE_PATHS entry: {entry!r}")
            paths[source_id.strip().lower()] = Path(path.strip())
        return paths


settings = Settings()
