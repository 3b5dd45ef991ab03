"""Shared fixtures for the leadership verifier test-suite."""
from __future__ import annotations

from typing import Any, Callable, Dict, List

import httpx
import pytest

from leadership_verifier.cache import MemoryCacheStore
from leadership_verifier.config import ProviderSettings, Settings
from leadership_verifier.http import RetryPolicy
from leadership_verifier.models import InputRecord
from leadership_verifier.rate_limit import RateLimiter


@pytest.fixture()
def make_record() -> Callable[..., InputRecord]:
    def _make(**overrides: Any) -> InputRecord:
        values: Dict[str, Any] = {
            "id": "rec-1",
            "job_id": "job-1",
            "row_index": 1,
            "filer_ein": "123456789",
            "org_name": "Acme Foundation",
            "employee_name_raw": "Jane Doe",
            "website_raw": "https://www.acme.org",
            "org_domain": "acme.org",
            "first_name": "Jane",
            "last_name": "Doe",
            "employee_title_raw": "CEO",
        }
        values.update(overrides)
        return InputRecord(**values)

    return _make


@pytest.fixture()
def online_settings() -> Settings:
    return Settings(
        enrichment_mode="online",
        google_cse=ProviderSettings(api_key="cse-key", cost_usd=0.005),
        google_cse_cx="cx-123",
        email_finder_provider="hunter",
        hunter=ProviderSettings(api_key="hunter-key", cost_usd=0.02),
        email_verifier_provider="zerobounce",
        zerobounce=ProviderSettings(api_key="zb-key", cost_usd=0.004),
        pdl=ProviderSettings(api_key="pdl-key", cost_usd=0.05),
        retry=RetryPolicy(retries=0, base_delay_ms=1, max_delay_ms=1),
    )


class RecordingHandler:
    """MockTransport handler returning queued responses and remembering requests."""

    def __init__(self, *responses: httpx.Response) -> None:
        self._responses: List[httpx.Response] = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        template = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        return httpx.Response(template.status_code, headers=template.headers, content=template.content)


@pytest.fixture()
def make_client() -> Callable[..., Any]:
    """Build a provider client wired to an in-memory cache and a mocked transport."""

    def _make(client_cls, handler: RecordingHandler, settings: ProviderSettings, **kwargs: Any):
        kwargs.setdefault("cache", MemoryCacheStore())
        kwargs.setdefault("limiter", RateLimiter(1, 0))
        kwargs.setdefault("retry_policy", RetryPolicy(retries=0))
        kwargs.setdefault("sleep", lambda seconds: None)
        http_client = httpx.Client(transport=httpx.MockTransport(handler))
        return client_cls(settings, http_client=http_client, **kwargs)

    return _make


@pytest.fixture()
def recording_handler() -> Callable[..., RecordingHandler]:
    return RecordingHandler
