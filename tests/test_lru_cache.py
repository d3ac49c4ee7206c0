import pytest

from memlab.lru_cache import APICache, CachedAPIResponse, DatabaseCache, LRUCache, main


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_set_then_get_returns_value():
    cache = LRUCache(2)
    cache.set("k", "v")
    assert cache.get("k") == "v"


def test_least_recently_used_is_evicted():
    cache = LRUCache(3)
    cache.set("A", 1)
    cache.set("B", 2)
    cache.set("C", 3)
    cache.get("A")
    cache.get("B")
    cache.set("D", 4)
    with pytest.raises(KeyError):
        cache.get("C")
    assert [cache.get(k) for k in ("A", "B", "D")] == [1, 2, 4]
    assert len(cache) == 3


def test_update_refreshes_recency():
    cache = LRUCache(2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    cache.set("c", 3)
    with pytest.raises(KeyError):
        cache.get("b")
    assert cache.get("a") == 10


def test_invalidate_keeps_slot_but_misses():
    cache = LRUCache(2)
    cache.set("x", "value")
    cache.invalidate("x")
    with pytest.raises(KeyError):
        cache.get("x")
    assert len(cache) == 1
    cache.set("x", "again")
    assert cache.get("x") == "again"


def test_remove_frees_slot_and_ignores_missing():
    cache = LRUCache(2)
    cache.set("x", 1)
    cache.remove("x")
    cache.remove("missing")
    assert len(cache) == 0
    with pytest.raises(KeyError):
        cache.get("x")


def test_stats_counts_hits_and_misses():
    cache = LRUCache(2)
    assert cache.stats().hit_rate == 0.0
    cache.set("a", 1)
    cache.get("a")
    cache.get("a")
    with pytest.raises(KeyError):
        cache.get("b")
    stats = cache.stats()
    assert (stats.hits, stats.misses) == (2, 1)
    assert stats.hit_rate == pytest.approx(200 / 3)


def test_api_cache_serves_from_cache_within_ttl():
    clock = FakeClock()
    api = APICache(10, 5.0, clock)
    api.fetch_latency = 0
    first = api.get_user_data("123")
    second = api.get_user_data("123")
    assert second is first
    assert first["email"] == "user123@example.com"
    assert api.cache.stats().hits == 1


def test_api_cache_refetches_after_ttl():
    clock = FakeClock()
    api = APICache(10, 5.0, clock)
    api.fetch_latency = 0
    first = api.get_user_data("7")
    clock.now = 6.0
    second = api.get_user_data("7")
    assert second == first
    assert second is not first
    stored = api.cache.get("user:7")
    assert isinstance(stored, CachedAPIResponse)
    assert stored.timestamp == 6.0


def test_database_cache_reuses_result():
    db = DatabaseCache(5)
    db.query_latency = 0
    first = db.execute_query("SELECT * FROM users")
    second = db.execute_query("SELECT * FROM users")
    assert len(first) == 2
    assert second == first
    stats = db.cache.stats()
    assert (stats.hits, stats.misses) == (1, 1)


def test_main_runs_demo(capsys):
    assert main([]) == 0
    out = capsys.readouterr().out
    assert "C was evicted as expected" in out
    assert "A is invalidated" in out