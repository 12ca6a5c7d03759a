"""
Unit tests for the TTL cache primitive.
"""

from service_store.app.caching.ttl_cache import TTLCache


class TestTTLCache:
    """Test cases for TTLCache."""

    def test_get_within_ttl(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("a", 1)

        clock.advance(9.9)

        assert cache.get("a") == 1

    def test_entry_absent_after_ttl(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("a", 1)

        clock.advance(10)

        assert cache.get("a") is None
        assert len(cache) == 0

    def test_per_entry_ttl_overrides_default(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("short", 1, ttl=1)
        cache.set("long", 2)

        clock.advance(5)

        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_non_positive_ttl_never_expires(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("forever", "x", ttl=0)

        clock.advance(10 ** 9)

        assert cache.get("forever") == "x"

    def test_expired_entry_dropped_without_keep_stale(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("a", 1)
        clock.advance(11)

        assert cache.get_stale("a") is None
        assert not cache.contains("a", include_stale=True)

    def test_keep_stale_serves_expired_value_only_through_get_stale(self, clock):
        cache = TTLCache(10, keep_stale=True, clock=clock)
        cache.set("a", 1)
        clock.advance(11)

        assert cache.get("a") is None
        assert cache.get_stale("a") == 1
        assert cache.contains("a", include_stale=True)
        assert not cache.contains("a")

    def test_set_replaces_value_and_expiry(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("a", 1)
        clock.advance(8)
        cache.set("a", 2)
        clock.advance(8)

        assert cache.get("a") == 2

    def test_delete_reports_presence(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("a", 1)

        assert cache.delete("a") is True
        assert cache.delete("a") is False
        assert cache.get("a") is None

    def test_keys_and_items_skip_expired(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("old", 1, ttl=1)
        cache.set("new", 2)
        clock.advance(2)

        assert cache.keys() == ["new"]
        assert cache.items() == [("new", 2)]

    def test_sweep_removes_expired_entries(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("a", 1, ttl=1)
        cache.set("b", 2, ttl=1)
        cache.set("c", 3)
        clock.advance(2)

        assert cache.sweep() == 2
        assert cache.keys() == ["c"]

    def test_sweep_leaves_stale_keeping_cache_alone(self, clock):
        cache = TTLCache(10, keep_stale=True, clock=clock)
        cache.set("a", 1, ttl=1)
        clock.advance(2)

        assert cache.sweep() == 0
        assert cache.get_stale("a") == 1

    def test_clear(self, clock):
        cache = TTLCache(10, clock=clock)
        cache.set("a", 1)
        cache.clear()

        assert len(cache) == 0
