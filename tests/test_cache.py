import pytest

from yearcast.store.cache import QueryCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_hit_within_ttl():
    clock = FakeClock()
    cache = QueryCache(ttl_s=300, clock=clock)
    cache.put("k", [1, 2])
    clock.now += 299
    assert cache.get("k") == [1, 2]
    assert "k" in cache


def test_miss_after_ttl():
    clock = FakeClock()
    cache = QueryCache(ttl_s=300, clock=clock)
    cache.put("k", "X")
    clock.now += 300
    assert cache.get("k") is None
    assert len(cache) == 0


def test_put_restamps_entry():
    clock = FakeClock()
    cache = QueryCache(ttl_s=10, clock=clock)
    first = cache.put("k", "old")
    clock.now += 8
    second = cache.put("k", "new")
    clock.now += 8
    assert cache.get("k") == "new"
    assert first.payload == "old" and second.fetched_at > first.fetched_at


def test_get_or_fetch_does_not_cache_errors():
    cache = QueryCache()
    calls = []

    def boom():
        calls.append(1)
        raise RuntimeError("down")

    with pytest.raises(RuntimeError):
        cache.get_or_fetch("k", boom)
    assert len(cache) == 0
    assert cache.get_or_fetch("k", lambda: "ok") == "ok"
    assert cache.get_or_fetch("k", boom) == "ok"
    assert len(calls) == 1


def test_invalidate_and_clear():
    cache = QueryCache()
    cache.put("a", 1)
    cache.put("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    cache.clear()
    assert len(cache) == 0


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        QueryCache(ttl_s=0)
