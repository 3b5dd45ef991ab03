"""Per-provider concurrency caps and start-time spacing for external API calls."""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Iterator, Mapping, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """FIFO scheduler enforcing a concurrency cap and a minimum interval between starts.

    A single "last start" clock is shared by every slot. It is advanced under the
    lock when a caller is admitted, before that caller sleeps, so concurrent
    callers never compute their wait against a stale value.
    """

    def __init__(
        self,
        concurrency: int = 1,
        min_time_ms: float = 0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._concurrency = concurrency
        self._interval = max(0.0, float(min_time_ms)) / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._condition = threading.Condition()
        self._waiting: Deque[object] = deque()
        self._running = 0
        self._last_start = float("-inf")

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def running(self) -> int:
        with self._condition:
            return self._running

    def _admit(self) -> float:
        ticket = object()
        with self._condition:
            self._waiting.append(ticket)
            while self._waiting[0] is not ticket or self._running >= self._concurrency:
                self._condition.wait()
            self._waiting.popleft()
            self._running += 1

            now = self._clock()
            wait = max(0.0, self._interval - (now - self._last_start))
            self._last_start = now + wait
            self._condition.notify_all()
        return wait

    def _release(self) -> None:
        with self._condition:
            self._running -= 1
            self._condition.notify_all()

    def schedule(self, task: Callable[..., T], *args, **kwargs) -> T:
        """Run ``task`` once a slot is free and the pacing interval has elapsed."""

        wait = self._admit()
        try:
            if wait > 0:
                LOGGER.debug("Rate limiter delaying call by %.3fs", wait)
                self._sleep(wait)
            return task(*args, **kwargs)
        finally:
            self._release()


class RateLimiterRegistry(Mapping[str, RateLimiter]):
    """One limiter per provider, constructed explicitly and handed to each client."""

    def __init__(self, limiters: Dict[str, RateLimiter]) -> None:
        self._limiters = dict(limiters)

    @classmethod
    def from_settings(cls, settings) -> "RateLimiterRegistry":
        providers = {
            "google_cse": settings.google_cse,
            "hunter": settings.hunter,
            "zerobounce": settings.zerobounce,
            "pdl": settings.pdl,
        }
        return cls(
            {
                name: RateLimiter(provider.concurrency, provider.min_time_ms)
                for name, provider in providers.items()
            }
        )

    def __getitem__(self, name: str) -> RateLimiter:
        try:
            return self._limiters[name]
        except KeyError as exc:
            raise KeyError(f"No rate limiter configured for provider '{name}'") from exc

    def __iter__(self) -> Iterator[str]:
        return iter(self._limiters)

    def __len__(self) -> int:
        return len(self._limiters)
