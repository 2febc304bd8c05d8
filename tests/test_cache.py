from __future__ import annotations

import threading

import pytest

from casereview.services.cache import FingerprintCache
from tests.conftest import FakeClock


def make_cache(clock, **kwargs) -> FingerprintCache:
    kwargs.setdefault("default_ttl", 60.0)
    return FingerprintCache(clock=clock, **kwargs)


def test_get_returns_value_until_ttl_elapses(clock) -> None:
    cache = make_cache(clock)
    cache.set("p1:120", {"symptoms": ["Insomnia"]})

    clock.advance(59.9)
    assert cache.get("p1:120") == {"symptoms": ["Insomnia"]}
    assert cache.contains("p1:120")

    clock.advance(0.1)
    assert cache.get("p1:120") is None
    assert "p1:120" not in cache
    assert len(cache) == 0


def test_per_entry_ttl_overrides_default(clock) -> None:
    cache = make_cache(clock)
    cache.set("short", 1, ttl=5)
    cache.set("long", 2)

    clock.advance(10)
    assert cache.get("short") is None
    assert cache.get("long") == 2


def test_invalidate_and_clear(clock) -> None:
    cache = make_cache(clock)
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.invalidate("a") is True
    assert cache.invalidate("a") is False
    assert cache.get("a") is None

    cache.clear()
    assert len(cache) == 0


def test_overflow_evicts_oldest_entry(clock) -> None:
    cache = make_cache(clock, max_entries=3)
    for key in ("a", "b", "c"):
        cache.set(key, key)
        clock.advance(1)

    cache.set("d", "d")

    assert cache.get("a") is None
    assert [cache.get(k) for k in ("b", "c", "d")] == ["b", "c", "d"]
    assert len(cache) == 3


def test_rewriting_a_key_makes_it_newest(clock) -> None:
    cache = make_cache(clock, max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)

    cache.set("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 10


def test_sweep_removes_only_expired_entries(clock) -> None:
    cache = make_cache(clock)
    cache.set("old", 1, ttl=10)
    cache.set("fresh", 2, ttl=100)

    clock.advance(30)

    assert cache.sweep() == 1
    assert len(cache) == 1
    assert cache.get("fresh") == 2
    assert cache.sweep() == 0


def test_values_are_isolated_from_callers(clock) -> None:
    cache = make_cache(clock)
    value = {"symptoms": ["Insomnia"]}
    cache.set("k", value)

    value["symptoms"].append("mutated after set")
    returned = cache.get("k")
    returned["symptoms"].append("mutated after get")

    assert cache.get("k") == {"symptoms": ["Insomnia"]}


def test_stats_count_hits_and_misses(clock) -> None:
    cache = make_cache(clock)
    cache.set("k", 1)
    cache.get("k")
    cache.get("missing")

    assert cache.stats() == {"hits": 1, "misses": 1, "size": 1}


def test_rejects_non_positive_capacity() -> None:
    with pytest.raises(ValueError):
        FingerprintCache(max_entries=0)


def test_concurrent_writers_respect_capacity() -> None:
    cache = FingerprintCache(default_ttl=60, max_entries=50, clock=FakeClock())

    def writer(prefix: str) -> None:
        for i in range(200):
            cache.set(f"{prefix}:{i}", i)
            cache.get(f"{prefix}:{i}")

    threads = [threading.Thread(target=writer, args=(f"t{n}",)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) == 50
