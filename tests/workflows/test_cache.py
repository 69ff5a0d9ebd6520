"""Tests for the TTL cache."""

from __future__ import annotations

import asyncio

from workflows.cache import CacheKey, FIFOEviction, TTLCache


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("a", 1)
    clock.now = 9.9
    assert cache.get("a") == 1
    clock.now = 10.0
    assert cache.get("a") is None
    assert "a" not in cache


def test_per_entry_ttl_override():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=100, clock=clock)
    cache.set("short", "x", ttl=1)
    clock.now = 2
    assert cache.get("short") is None
    assert cache.purge_expired() == 0


def test_lru_eviction_keeps_recently_read():
    cache = TTLCache(max_size=2, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)
    assert "a" in cache
    assert "b" not in cache
    assert len(cache) == 2


def test_fifo_eviction_ignores_reads():
    cache = TTLCache(max_size=2, eviction=FIFOEviction(), clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)
    assert "a" not in cache
    assert "b" in cache


def test_invalidate_by_tag():
    cache = TTLCache(clock=FakeClock())
    cache.set("x", 1, tags=("city:london",))
    cache.set("y", 2, tags=("city:london", "kind:places"))
    cache.set("z", 3, tags=("city:nyc",))
    assert cache.invalidate_by_tag("city:london") == 2
    assert cache.invalidate_by_tag("city:london") == 0
    assert "z" in cache


def test_stats_track_hits_and_misses():
    cache = TTLCache(clock=FakeClock())
    cache.get("missing")
    cache.set("k", "v")
    cache.get("k")
    cache.get("k")
    stats = cache.stats()
    assert stats["hits"] == 2
    assert stats["misses"] == 1
    assert stats["size"] == 1
    assert round(stats["hit_ratio"], 2) == 0.67


def test_cache_key_ignores_dict_ordering():
    first = CacheKey.build("places", query="cafe", bias={"lat": 51.5, "lng": -0.1})
    second = CacheKey.build("places", bias={"lng": -0.1, "lat": 51.5}, query="cafe")
    assert first == second
    assert hash(first) == hash(second)
    assert first != CacheKey.build("weather", query="cafe", bias={"lat": 51.5, "lng": -0.1})


def test_get_or_set_calls_factory_once():
    cache = TTLCache(clock=FakeClock())
    calls = []

    def factory():
        calls.append(1)
        return "value"

    assert cache.get_or_set("k", factory) == "value"
    assert cache.get_or_set("k", factory) == "value"
    assert len(calls) == 1


def test_aget_or_set_awaits_factory_on_miss_only():
    cache = TTLCache(clock=FakeClock())
    calls = []

    async def factory():
        calls.append(1)
        return ["venue"]

    async def run():
        first = await cache.aget_or_set("k", factory, tags=("city:london",))
        second = await cache.aget_or_set("k", factory)
        return first, second

    first, second = asyncio.run(run())
    assert first == second == ["venue"]
    assert len(calls) == 1
    assert cache.invalidate_by_tag("city:london") == 1
