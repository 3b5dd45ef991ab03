"""Content-addressed cache for external provider responses."""
from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

from .models import CacheEntry, CacheProvider

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_cache_key(provider: CacheProvider | str, request: Any) -> str:
    """Return the SHA-256 of the canonical JSON form of ``{provider, request}``.

    Keys are sorted at every nesting level so requests that differ only in field
    order share a key.
    """

    provider_tag = provider.value if isinstance(provider, CacheProvider) else str(provider)
    payload = json.dumps(
        {"provider": provider_tag, "request": request},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheLookup:
    """Result of a cache read; ``value`` is only meaningful on a hit."""

    hit: bool
    value: Any = None


MISS = CacheLookup(hit=False)


class CacheStore(Protocol):
    """Interface shared by every cache backend."""

    def get(self, provider: CacheProvider, cache_key: str) -> CacheLookup:  # pragma: no cover - protocol
        ...

    def set(
        self,
        provider: CacheProvider,
        cache_key: str,
        request: Dict[str, Any],
        response: Any,
        *,
        status_code: Optional[int] = None,
        cost_usd: float = 0.0,
        ttl_days: Optional[float] = None,
    ) -> None:  # pragma: no cover - protocol
        ...


def _expiry(now: datetime, ttl_days: Optional[float]) -> Optional[datetime]:
    return now + timedelta(days=ttl_days) if ttl_days else None


class MemoryCacheStore:
    """Thread-safe in-process cache, used for offline runs and tests."""

    def __init__(self, *, now: Clock = utc_now) -> None:
        self._now = now
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, provider: CacheProvider, cache_key: str) -> CacheLookup:
        with self._lock:
            entry = self._entries.get(cache_key)
        if entry is None or entry.is_expired(self._now()):
            return MISS
        return CacheLookup(hit=True, value=entry.response)

    def set(
        self,
        provider: CacheProvider,
        cache_key: str,
        request: Dict[str, Any],
        response: Any,
        *,
        status_code: Optional[int] = None,
        cost_usd: float = 0.0,
        ttl_days: Optional[float] = None,
    ) -> None:
        now = self._now()
        entry = CacheEntry(
            cache_key=cache_key,
            provider=provider,
            request=request,
            response=response,
            status_code=status_code,
            cost_usd=cost_usd,
            fetched_at=now,
            expires_at=_expiry(now, ttl_days),
        )
        with self._lock:
            self._entries[cache_key] = entry

    def entry(self, cache_key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(cache_key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_results (
    cache_key TEXT PRIMARY KEY,
    provider TEXT NOT NULL,
    request TEXT NOT NULL,
    response TEXT NOT NULL,
    status_code INTEGER,
    cost_usd REAL NOT NULL DEFAULT 0,
    fetched_at TEXT NOT NULL,
    expires_at TEXT
)
"""


class SqliteCacheStore:
    """File-backed cache; each call opens its own connection so threads can share it."""

    def __init__(self, path: str | Path, *, now: Clock = utc_now) -> None:
        self.path = Path(path)
        self._now = now
        self.path.parent.mkdir(parents=True, exist_ok=True)
        con = self._connect()
        try:
            con.execute(_SCHEMA)
            con.commit()
        finally:
            con.close()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.path), timeout=30)

    def get(self, provider: CacheProvider, cache_key: str) -> CacheLookup:
        con = self._connect()
        try:
            row = con.execute(
                "SELECT response, expires_at FROM cache_results WHERE cache_key=?",
                (cache_key,),
            ).fetchone()
        finally:
            con.close()
        if row is None:
            return MISS
        response, expires_at = row
        if expires_at and datetime.fromisoformat(expires_at) <= self._now():
            LOGGER.debug("Cache entry %s for %s has expired", cache_key[:12], provider)
            return MISS
        return CacheLookup(hit=True, value=json.loads(response))

    def set(
        self,
        provider: CacheProvider,
        cache_key: str,
        request: Dict[str, Any],
        response: Any,
        *,
        status_code: Optional[int] = None,
        cost_usd: float = 0.0,
        ttl_days: Optional[float] = None,
    ) -> None:
        now = self._now()
        expires_at = _expiry(now, ttl_days)
        con = self._connect()
        try:
            con.execute(
                """
                INSERT INTO cache_results
                    (cache_key, provider, request, response, status_code, cost_usd, fetched_at, expires_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(cache_key) DO UPDATE SET
                    provider=excluded.provider,
                    request=excluded.request,
                    response=excluded.response,
                    status_code=excluded.status_code,
                    cost_usd=excluded.cost_usd,
                    fetched_at=excluded.fetched_at,
                    expires_at=excluded.expires_at
                """,
                (
                    cache_key,
                    provider.value if isinstance(provider, CacheProvider) else str(provider),
                    json.dumps(request, sort_keys=True),
                    json.dumps(response),
                    status_code,
                    float(cost_usd),
                    now.isoformat(),
                    expires_at.isoformat() if expires_at else None,
                ),
            )
            con.commit()
        finally:
            con.close()
