"""Request-with-backoff helper shared by every provider client."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Mapping, Optional, Tuple

import httpx
from tenacity import RetryCallState, Retrying, retry_if_exception_type, retry_if_result, stop_after_attempt

LOGGER = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES: Tuple[int, ...] = (429, 500, 502, 503, 504)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and exponential backoff bounds, in milliseconds."""

    retries: int = 3
    base_delay_ms: int = 500
    max_delay_ms: int = 10_000
    retry_statuses: Tuple[int, ...] = DEFAULT_RETRY_STATUSES

    def backoff_ms(self, attempt: int) -> float:
        return min(self.max_delay_ms, self.base_delay_ms * (2**attempt))


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Return the ``Retry-After`` delay in milliseconds, or ``None`` if unusable.

    The header may carry either delta-seconds or an HTTP-date.
    """

    if not value:
        return None
    text = value.strip()
    try:
        seconds = float(text)
    except ValueError:
        seconds = None
    if seconds is not None:
        return seconds * 1000 if seconds >= 0 else None

    try:
        when = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    delta_ms = (when - now).total_seconds() * 1000
    return delta_ms if delta_ms > 0 else 0.0


def _retry_wait(policy: RetryPolicy) -> Callable[[RetryCallState], float]:
    """Seconds to wait before the next attempt; ``Retry-After`` wins over backoff."""

    def wait(retry_state: RetryCallState) -> float:
        delay_ms = policy.backoff_ms(retry_state.attempt_number - 1)
        outcome = retry_state.outcome
        if outcome is not None and not outcome.failed:
            retry_after = parse_retry_after(outcome.result().headers.get("retry-after"))
            if retry_after is not None:
                delay_ms = min(policy.max_delay_ms, retry_after)
        return delay_ms / 1000

    return wait


def _before_retry(url: str, policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        delay = retry_state.next_action.sleep if retry_state.next_action else None
        if outcome.failed:
            LOGGER.debug("Transport error for %s (%s); retrying in %ss", url, outcome.exception(), delay)
            return
        response = outcome.result()
        LOGGER.debug(
            "HTTP %s from %s; retry %s/%s in %ss",
            response.status_code,
            url,
            retry_state.attempt_number,
            policy.retries,
            delay,
        )
        response.close()

    return before_sleep


def _last_outcome(retry_state: RetryCallState) -> httpx.Response:
    # Re-raises the transport error when the final attempt failed.
    return retry_state.outcome.result()


def fetch_with_retry(
    client: httpx.Client,
    url: str,
    *,
    method: str = "GET",
    params: Optional[Mapping[str, str]] = None,
    headers: Optional[Mapping[str, str]] = None,
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> httpx.Response:
    """Issue a request, retrying retryable statuses and transport failures.

    Once the retry budget is spent the last response is returned unchanged, even
    when it is not a 2xx, so callers can branch on the status code. Transport
    errors are re-raised.
    """

    policy = policy or RetryPolicy()
    retryer = Retrying(
        retry=(
            retry_if_exception_type(httpx.TransportError)
            | retry_if_result(lambda response: response.status_code in policy.retry_statuses)
        ),
        stop=stop_after_attempt(policy.retries + 1),
        wait=_retry_wait(policy),
        sleep=sleep,
        before_sleep=_before_retry(url, policy),
        retry_error_callback=_last_outcome,
        reraise=True,
    )
    return retryer(client.request, method, url, params=params, headers=headers)
