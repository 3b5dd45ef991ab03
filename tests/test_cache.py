from datetime import datetime, timedelta, timezone

import pytest

from leadership_verifier.cache import MemoryCacheStore, SqliteCacheStore, build_cache_key
from leadership_verifier.models import CacheProvider


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def test_cache_key_ignores_field_order() -> None:
    first = build_cache_key(CacheProvider.GOOGLE_CSE, {"q": "acme", "num": 5, "cx": "abc"})
    second = build_cache_key(CacheProvider.GOOGLE_CSE, {"cx": "abc", "num": 5, "q": "acme"})

    assert first == second
    assert len(first) == 64


def test_cache_key_depends_on_provider_and_values() -> None:
    request = {"email": "jane@acme.org"}

    assert build_cache_key(CacheProvider.EMAIL_VERIFIER, request) != build_cache_key(CacheProvider.PDL, request)
    assert build_cache_key(CacheProvider.PDL, request) != build_cache_key(CacheProvider.PDL, {"email": "x@acme.org"})


def test_cache_key_sorts_nested_objects() -> None:
    first = build_cache_key("custom", {"outer": {"b": 1, "a": [1, 2]}})
    second = build_cache_key("custom", {"outer": {"a": [1, 2], "b": 1}})

    assert first == second


@pytest.fixture(params=["memory", "sqlite"])
def store_with_clock(request, tmp_path):
    clock = FakeClock()
    if request.param == "memory":
        return MemoryCacheStore(now=clock), clock
    return SqliteCacheStore(tmp_path / "cache.sqlite3", now=clock), clock


def test_entry_is_served_until_it_expires(store_with_clock) -> None:
    store, clock = store_with_clock
    key = build_cache_key(CacheProvider.GOOGLE_CSE, {"q": "acme"})
    store.set(CacheProvider.GOOGLE_CSE, key, {"q": "acme"}, {"items": []}, status_code=200, cost_usd=0.005, ttl_days=30)

    clock.advance(days=29)
    lookup = store.get(CacheProvider.GOOGLE_CSE, key)
    assert lookup.hit
    assert lookup.value == {"items": []}

    clock.advance(days=2)
    assert not store.get(CacheProvider.GOOGLE_CSE, key).hit


def test_missing_key_is_a_miss(store_with_clock) -> None:
    store, _ = store_with_clock

    assert not store.get(CacheProvider.PDL, "does-not-exist").hit


def test_set_overwrites_existing_entry(store_with_clock) -> None:
    store, _ = store_with_clock
    store.set(CacheProvider.PDL, "key", {"a": 1}, {"v": 1}, ttl_days=90)
    store.set(CacheProvider.PDL, "key", {"a": 1}, {"v": 2}, ttl_days=90)

    assert store.get(CacheProvider.PDL, "key").value == {"v": 2}


def test_memory_store_keeps_entry_metadata() -> None:
    clock = FakeClock()
    store = MemoryCacheStore(now=clock)
    store.set(CacheProvider.EMAIL_FINDER, "key", {"domain": "acme.org"}, {"data": {}}, status_code=200, cost_usd=0.02, ttl_days=90)

    entry = store.entry("key")
    assert entry is not None
    assert entry.cost_usd == 0.02
    assert entry.expires_at == clock.now + timedelta(days=90)
    assert len(store) == 1
