from datetime import datetime, timezone

import httpx
import pytest

from leadership_verifier.http import RetryPolicy, fetch_with_retry, parse_retry_after


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_retries_server_errors_with_growing_delays() -> None:
    statuses = [503, 503, 503, 200]
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(statuses.pop(0), json={"ok": True})

    response = fetch_with_retry(
        _client(handler),
        "https://api.example.com/search",
        policy=RetryPolicy(retries=3, base_delay_ms=500, max_delay_ms=10_000),
        sleep=sleeps.append,
    )

    assert response.status_code == 200
    assert sleeps == [0.5, 1.0, 2.0]
    assert sleeps == sorted(sleeps)


def test_backoff_is_capped() -> None:
    policy = RetryPolicy(retries=5, base_delay_ms=500, max_delay_ms=1500)

    assert [policy.backoff_ms(attempt) for attempt in range(4)] == [500, 1000, 1500, 1500]


def test_exhausted_retries_return_last_response() -> None:
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    response = fetch_with_retry(
        _client(handler),
        "https://api.example.com",
        policy=RetryPolicy(retries=2, base_delay_ms=10),
        sleep=sleeps.append,
    )

    assert response.status_code == 502
    assert len(sleeps) == 2


def test_no_retry_budget_returns_429_without_sleeping() -> None:
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429)

    response = fetch_with_retry(
        _client(handler), "https://api.example.com", policy=RetryPolicy(retries=0), sleep=sleeps.append
    )

    assert response.status_code == 429
    assert sleeps == []


def test_non_retryable_status_is_returned_immediately() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(404)

    response = fetch_with_retry(_client(handler), "https://api.example.com", sleep=lambda s: None)

    assert response.status_code == 404
    assert len(calls) == 1


def test_retry_after_header_takes_precedence_and_is_clamped() -> None:
    responses = [
        httpx.Response(429, headers={"Retry-After": "2"}),
        httpx.Response(429, headers={"Retry-After": "120"}),
        httpx.Response(200),
    ]
    sleeps = []

    response = fetch_with_retry(
        _client(lambda request: responses.pop(0)),
        "https://api.example.com",
        policy=RetryPolicy(retries=3, base_delay_ms=100, max_delay_ms=5_000),
        sleep=sleeps.append,
    )

    assert response.status_code == 200
    assert sleeps == [2.0, 5.0]


def test_transport_errors_are_retried_then_raised() -> None:
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(httpx.ConnectError):
        fetch_with_retry(
            _client(handler),
            "https://api.example.com",
            policy=RetryPolicy(retries=2, base_delay_ms=100),
            sleep=sleeps.append,
        )

    assert sleeps == [0.1, 0.2]


def test_parse_retry_after_accepts_seconds_and_http_dates() -> None:
    now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    assert parse_retry_after("3") == 3000
    assert parse_retry_after("Mon, 01 Jan 2024 12:00:05 GMT", now=now) == pytest.approx(5000)
    assert parse_retry_after("Mon, 01 Jan 2024 11:59:00 GMT", now=now) == 0.0
    assert parse_retry_after("soon") is None
    assert parse_retry_after(None) is None


def test_one_retry_means_two_requests() -> None:
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        response = httpx.Response(503 if not sent else 200)
        sent.append(response)
        return response

    response = fetch_with_retry(
        _client(handler),
        "https://api.example.com",
        policy=RetryPolicy(retries=1, base_delay_ms=1),
        sleep=lambda seconds: None,
    )

    assert response.status_code == 200
    assert len(sent) == 2
