from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from conftest import T0
from core.errors import RateLimitError
from core.rate_limiter import ManualRefreshLimiter


def test_first_request_is_admitted() -> None:
    limiter = ManualRefreshLimiter(600)
    assert limiter.try_admit("usd", T0).admitted
    assert limiter.last_admitted_at("usd") == T0


def test_denied_inside_window_with_seconds_left() -> None:
    limiter = ManualRefreshLimiter(600)
    limiter.try_admit("usd", T0)

    admission = limiter.try_admit("usd", T0 + timedelta(seconds=300))

    assert not admission.admitted
    assert admission.seconds_left == 300


def test_seconds_left_rounds_up() -> None:
    limiter = ManualRefreshLimiter(600)
    limiter.try_admit("usd", T0)

    admission = limiter.try_admit("usd", T0 + timedelta(seconds=299, milliseconds=1))

    assert admission.seconds_left == 301


def test_admitted_exactly_at_interval() -> None:
    limiter = ManualRefreshLimiter(600)
    limiter.try_admit("usd", T0)

    assert limiter.try_admit("usd", T0 + timedelta(seconds=600)).admitted
    assert limiter.last_admitted_at("usd") == T0 + timedelta(seconds=600)


def test_denial_does_not_move_the_window() -> None:
    limiter = ManualRefreshLimiter(600)
    limiter.try_admit("usd", T0)
    limiter.try_admit("usd", T0 + timedelta(seconds=500))

    assert limiter.last_admitted_at("usd") == T0
    assert limiter.try_admit("usd", T0 + timedelta(seconds=600)).admitted


def test_sources_have_independent_windows() -> None:
    limiter = ManualRefreshLimiter(600)
    limiter.try_admit("usd", T0)

    assert limiter.try_admit("aapl", T0 + timedelta(seconds=1)).admitted
    assert not limiter.try_admit("usd", T0 + timedelta(seconds=1)).admitted


def test_acquire_raises_with_seconds_left() -> None:
    limiter = ManualRefreshLimiter(600)
    limiter.acquire("usd", T0)

    with pytest.raises(RateLimitError) as exc_info:
        limiter.acquire("usd", T0 + timedelta(seconds=200))
    assert exc_info.value.seconds_left == 400


def test_next_allowed_at_and_reset() -> None:
    limiter = ManualRefreshLimiter(600)
    assert limiter.next_allowed_at("usd") is None

    limiter.try_admit("usd", T0)
    assert limiter.next_allowed_at("usd") == T0 + timedelta(seconds=600)

    limiter.reset("usd")
    assert limiter.next_allowed_at("usd") is None
    assert limiter.try_admit("usd", T0 + timedelta(seconds=1)).admitted


def test_racing_threads_admit_exactly_one() -> None:
    limiter = ManualRefreshLimiter(600)
    barrier = threading.Barrier(8)
    results: list[bool] = []
    results_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        admitted = limiter.try_admit("usd", T0).admitted
        with results_lock:
            results.append(admitted)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
