from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from api.app import Broadcaster, create_app, outcome_event
from conftest import StubExtractor
from core.coordinator import RefreshCoordinator
from core.models import RefreshFailed, RefreshTrigger
from scrapers.scheduler import RefreshScheduler


@pytest.fixture()
def client(coordinator) -> TestClient:
    return TestClient(create_app(coordinator, scheduler=RefreshScheduler(coordinator)))


def test_get_rate_cold_start_is_server_error(client) -> None:
    resp = client.get("/api/usd-rate")

    assert resp.status_code == 500
    assert resp.json() == {"status": "fail", "message": "Failed to read rate data"}


def test_get_rate_unknown_source_is_404(client) -> None:
    assert client.get("/api/eur-rate").status_code == 404
    assert client.post("/api/eur-rate/refresh").status_code == 404


def test_refresh_then_get(client, clock) -> None:
    resp = client.post("/api/usd-rate/refresh")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "success"
    assert body["message"] == "USD exchange rate refreshed successfully"
    assert body["data"] == {
        "currency": "USD",
        "exchangeRate": "1,320.50",
        "datetime": "2026-01-01T00:00:00+00:00",
    }
    assert body["nextAvailable"] == "2026-01-01T00:10:00+00:00"

    resp = client.get("/api/USD-rate")
    assert resp.status_code == 200
    assert resp.json() == body["data"]


def test_refresh_rate_limited(client, clock) -> None:
    client.post("/api/usd-rate/refresh")
    clock.advance(200)

    resp = client.post("/api/usd-rate/refresh")

    assert resp.status_code == 429
    assert resp.json() == {
        "status": "fail",
        "message": "Please wait before refreshing again",
        "secondsLeft": 400,
    }


def test_refresh_failure_keeps_serving_cached_value(client, extractor, clock) -> None:
    first = client.post("/api/usd-rate/refresh").json()["data"]
    clock.advance(600)
    extractor.fail_with = "table not found"

    resp = client.post("/api/usd-rate/refresh")

    assert resp.status_code == 500
    assert resp.json() == {"status": "fail", "message": "Failed to fetch exchange rate"}
    assert client.get("/api/usd-rate").json() == first


def test_stock_quote_source(store, limiter, clock) -> None:
    stock = StubExtractor(
        "aapl",
        kind="ticker",
        fields={"ticker": "AAPL", "price": "$189.20", "changePercent": "+1.02%"},
    )
    coordinator = RefreshCoordinator({"aapl": stock}, store, limiter, clock=clock)
    client = TestClient(create_app(coordinator))

    resp = client.post("/api/aapl-rate/refresh")
    assert resp.json()["message"] == "AAPL stock quote refreshed successfully"
    assert client.get("/api/aapl-rate").json() == {
        "ticker": "AAPL",
        "price": "$189.20",
        "changePercent": "+1.02%",
        "datetime": "2026-01-01T00:00:00+00:00",
    }


def test_list_sources(client) -> None:
    assert client.get("/api/sources").json() == [
        {
            "source": "usd",
            "kind": "currency",
            "datetime": None,
            "refreshing": False,
            "nextManualRefresh": None,
        }
    ]

    client.post("/api/usd-rate/refresh")
    item = client.get("/api/sources").json()[0]
    assert item["datetime"] == "2026-01-01T00:00:00+00:00"
    assert item["nextManualRefresh"] == "2026-01-01T00:10:00+00:00"


def test_scheduler_run_bypasses_manual_limit(client, extractor) -> None:
    client.post("/api/usd-rate/refresh")

    resp = client.post("/api/scheduler/run/usd")

    assert resp.status_code == 200
    assert resp.json()["status"] == "success"
    assert extractor.calls == 2


def test_scheduler_run_unknown_source(client) -> None:
    assert client.post("/api/scheduler/run/eur").status_code == 404


def test_scheduler_status_without_scheduler(coordinator) -> None:
    client = TestClient(create_app(coordinator))
    assert client.get("/api/scheduler/status").json() == {"running": False, "jobs": []}
    assert client.post("/api/scheduler/run/usd").status_code == 503


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok", "sources": ["usd"]}


def test_broadcaster_fans_out_outcome_events() -> None:
    broadcaster = Broadcaster()
    failed = RefreshFailed("usd", RefreshTrigger.SCHEDULED, "timeout")

    async def scenario():
        q = broadcaster.subscribe()
        await broadcaster.broadcast(outcome_event(failed))
        event = q.get_nowait()
        broadcaster.unsubscribe(q)
        return event

    assert asyncio.run(scenario()) == {
        "event": "refresh_complete",
        "source": "usd",
        "trigger": "scheduled",
        "status": "failed",
    }
    assert broadcaster.listener_count == 0
