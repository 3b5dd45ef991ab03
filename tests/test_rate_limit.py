import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from leadership_verifier.config import ProviderSettings, Settings
from leadership_verifier.rate_limit import RateLimiter, RateLimiterRegistry


def test_starts_are_spaced_by_min_time() -> None:
    limiter = RateLimiter(concurrency=1, min_time_ms=100)
    starts = []
    lock = threading.Lock()

    def task() -> None:
        with lock:
            starts.append(time.monotonic())

    with ThreadPoolExecutor(max_workers=5) as executor:
        for future in [executor.submit(limiter.schedule, task) for _ in range(5)]:
            future.result()

    starts.sort()
    gaps = [later - earlier for earlier, later in zip(starts, starts[1:])]
    assert len(gaps) == 4
    assert all(gap >= 0.09 for gap in gaps)


def test_concurrency_cap_is_never_exceeded() -> None:
    limiter = RateLimiter(concurrency=2, min_time_ms=0)
    in_flight = 0
    peak = 0
    lock = threading.Lock()

    def task() -> None:
        nonlocal in_flight, peak
        with lock:
            in_flight += 1
            peak = max(peak, in_flight)
        time.sleep(0.02)
        with lock:
            in_flight -= 1

    with ThreadPoolExecutor(max_workers=8) as executor:
        for future in [executor.submit(limiter.schedule, task) for _ in range(12)]:
            future.result()

    assert peak == 2
    assert limiter.running == 0


def test_schedule_returns_task_result_and_releases_on_error() -> None:
    limiter = RateLimiter()

    assert limiter.schedule(lambda a, b=0: a + b, 2, b=3) == 5

    def failing() -> None:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        limiter.schedule(failing)
    assert limiter.running == 0


def test_wait_uses_injected_clock_and_sleep() -> None:
    clock_value = [10.0]
    sleeps = []
    limiter = RateLimiter(1, 500, clock=lambda: clock_value[0], sleep=sleeps.append)

    limiter.schedule(lambda: None)
    limiter.schedule(lambda: None)

    assert sleeps == [pytest.approx(0.5)]


def test_invalid_concurrency_is_rejected() -> None:
    with pytest.raises(ValueError):
        RateLimiter(concurrency=0)


def test_registry_builds_one_limiter_per_provider() -> None:
    settings = Settings(google_cse=ProviderSettings(concurrency=3, min_time_ms=600))

    registry = RateLimiterRegistry.from_settings(settings)

    assert set(registry) == {"google_cse", "hunter", "zerobounce", "pdl"}
    assert registry["google_cse"].concurrency == 3
    with pytest.raises(KeyError):
        registry["unknown"]
