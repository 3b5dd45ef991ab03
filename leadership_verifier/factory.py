"""Factory helpers for constructing provider clients from settings."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .cache import CacheStore, MemoryCacheStore, SqliteCacheStore
from .config import Settings
from .providers import GoogleCseClient, HunterClient, PdlClient, ZeroBounceClient
from .rate_limit import RateLimiterRegistry

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class ServiceRegistry:
    """Shared cache, HTTP client, limiters and provider clients for one run."""

    settings: Settings
    cache: CacheStore
    http_client: httpx.Client
    limiters: RateLimiterRegistry
    search: GoogleCseClient
    pdl: PdlClient
    finder: Optional[HunterClient] = None
    verifier: Optional[ZeroBounceClient] = None
    owns_http_client: bool = True

    def close(self) -> None:
        if self.owns_http_client:
            self.http_client.close()

    def __enter__(self) -> "ServiceRegistry":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def build_cache(settings: Settings) -> CacheStore:
    if settings.cache_path:
        LOGGER.debug("Using SQLite cache at %s", settings.cache_path)
        return SqliteCacheStore(settings.cache_path)
    return MemoryCacheStore()


def build_services(
    settings: Settings,
    *,
    cache: Optional[CacheStore] = None,
    http_client: Optional[httpx.Client] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ServiceRegistry:
    """Wire every provider client to its limiter, the cache and one HTTP client."""

    cache = cache if cache is not None else build_cache(settings)
    owns_http_client = http_client is None
    if http_client is None:
        http_client = httpx.Client(timeout=DEFAULT_TIMEOUT_SECONDS, follow_redirects=True)
    limiters = RateLimiterRegistry.from_settings(settings)

    def client_kwargs(provider: str) -> dict:
        return {
            "cache": cache,
            "limiter": limiters[provider],
            "http_client": http_client,
            "retry_policy": settings.retry,
            "sleep": sleep,
        }

    finder = None
    if settings.email_finder_provider == "hunter":
        finder = HunterClient(settings.hunter, **client_kwargs("hunter"))
    verifier = None
    if settings.email_verifier_provider == "zerobounce":
        verifier = ZeroBounceClient(settings.zerobounce, **client_kwargs("zerobounce"))

    return ServiceRegistry(
        settings=settings,
        cache=cache,
        http_client=http_client,
        limiters=limiters,
        search=GoogleCseClient(settings.google_cse, cx=settings.google_cse_cx, **client_kwargs("google_cse")),
        pdl=PdlClient(settings.pdl, **client_kwargs("pdl")),
        finder=finder,
        verifier=verifier,
        owns_http_client=owns_http_client,
    )
