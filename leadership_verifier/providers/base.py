"""Shared request flow for cache-backed, rate-limited provider clients."""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Mapping, Optional, Tuple, TypeVar

import httpx

from ..cache import CacheStore, build_cache_key
from ..config import ConfigurationError, ProviderSettings
from ..http import RetryPolicy, fetch_with_retry
from ..models import CacheProvider
from ..rate_limit import RateLimiter

LOGGER = logging.getLogger(__name__)

R = TypeVar("R")


class ProviderError(RuntimeError):
    """Base class for failures talking to an external provider."""

    def __init__(self, provider: str, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class QuotaExceededError(ProviderError):
    """The provider answered HTTP 429 after the retry budget was spent."""


class ProviderUnavailableError(ProviderError):
    """Transport failure or a 5xx response that survived every retry."""


class ResponseParseError(ProviderError):
    """The provider returned a body that is not a JSON object."""


@dataclass(frozen=True)
class ProviderCall(Generic[R]):
    """Parsed response plus the accounting needed by the enrichers."""

    response: R
    raw: Dict[str, Any]
    cost_usd: float
    cached: bool
    status_code: int


class ProviderClient(Generic[R]):
    """Template for provider clients.

    Subclasses declare the endpoint, cache TTL and how to turn a canonical request
    into query parameters, and may override the cost and caching rules.
    """

    name: str = "provider"
    provider: CacheProvider
    base_url: str
    ttl_days: float = 90

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        cache: CacheStore,
        limiter: RateLimiter,
        http_client: httpx.Client,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self._cache = cache
        self._limiter = limiter
        self._http = http_client
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------
    def require_credentials(self) -> None:
        if not self.settings.api_key:
            raise ConfigurationError(f"{self.name} API key is required for online lookups")

    def build_query(self, request: Mapping[str, Any]) -> Tuple[Dict[str, str], Dict[str, str]]:
        raise NotImplementedError

    def parse(self, payload: Dict[str, Any], status_code: int) -> R:
        raise NotImplementedError

    def cost_for(self, status_code: int, payload: Dict[str, Any]) -> float:
        return self.settings.cost_usd if status_code < 400 else 0.0

    def should_cache(self, status_code: int, payload: Dict[str, Any]) -> bool:
        return status_code < 400

    def adapt_payload(self, status_code: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        return payload

    def cached_status(self, payload: Dict[str, Any]) -> int:
        return 200

    # ------------------------------------------------------------------
    def _call(self, request: Dict[str, Any]) -> ProviderCall[R]:
        cache_key = build_cache_key(self.provider, request)
        lookup = self._cache.get(self.provider, cache_key)
        if lookup.hit:
            payload = lookup.value or {}
            status_code = self.cached_status(payload)
            LOGGER.debug("%s cache hit %s", self.name, cache_key[:12])
            return ProviderCall(
                response=self.parse(payload, status_code),
                raw=payload,
                cost_usd=0.0,
                cached=True,
                status_code=status_code,
            )

        self.require_credentials()
        params, headers = self.build_query(request)
        LOGGER.debug("%s cache miss %s; calling %s", self.name, cache_key[:12], self.base_url)

        try:
            response = self._limiter.schedule(
                fetch_with_retry,
                self._http,
                self.base_url,
                params=params,
                headers=headers,
                policy=self._retry_policy,
                sleep=self._sleep,
            )
        except httpx.TransportError as exc:
            raise ProviderUnavailableError(self.name, f"transport error: {exc}") from exc

        status_code = response.status_code
        if status_code == 429:
            raise QuotaExceededError(
                self.name, f"rate limit exceeded: {response.text[:200]}", status_code=status_code
            )
        if status_code >= 500:
            raise ProviderUnavailableError(
                self.name, f"HTTP {status_code} after retries", status_code=status_code
            )

        payload = self._decode(response)
        payload = self.adapt_payload(status_code, payload)
        cost_usd = self.cost_for(status_code, payload)

        if self.should_cache(status_code, payload):
            self._cache.set(
                self.provider,
                cache_key,
                request,
                payload,
                status_code=status_code,
                cost_usd=cost_usd,
                ttl_days=self.ttl_days,
            )
        else:
            LOGGER.info("%s returned HTTP %s; response not cached", self.name, status_code)

        return ProviderCall(
            response=self.parse(payload, status_code),
            raw=payload,
            cost_usd=cost_usd,
            cached=False,
            status_code=status_code,
        )

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ResponseParseError(
                self.name, f"response parse error: {exc}", status_code=response.status_code
            ) from exc
        if not isinstance(payload, dict):
            raise ResponseParseError(
                self.name,
                f"expected a JSON object, got {type(payload).__name__}",
                status_code=response.status_code,
            )
        return payload


def _str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []
