"""Unit tests for the TTL cache."""
from __future__ import annotations

import pytest

from coinflip.cache import TTLCache
from tests.conftest import FakeClock


class TestTTLCache:
    def test_fresh_entry_is_returned(self, clock: FakeClock) -> None:
        cache: TTLCache[str, float] = TTLCache(60, clock)
        cache.put("bitcoin", 65000.0)
        clock.advance(59)
        assert cache.get("bitcoin") == 65000.0

    def test_entry_expires_at_ttl(self, clock: FakeClock) -> None:
        cache: TTLCache[str, float] = TTLCache(60, clock)
        cache.put("bitcoin", 65000.0)
        clock.advance(60)
        assert cache.get("bitcoin") is None

    def test_stale_entry_still_reachable(self, clock: FakeClock) -> None:
        cache: TTLCache[str, float] = TTLCache(60, clock)
        cache.put("bitcoin", 65000.0)
        clock.advance(3600)
        assert cache.get_stale("bitcoin") == 65000.0

    def test_put_refreshes_timestamp(self, clock: FakeClock) -> None:
        cache: TTLCache[str, float] = TTLCache(60, clock)
        cache.put("bitcoin", 1.0)
        clock.advance(50)
        cache.put("bitcoin", 2.0)
        clock.advance(50)
        assert cache.get("bitcoin") == 2.0

    def test_age(self, clock: FakeClock) -> None:
        cache: TTLCache[str, float] = TTLCache(60, clock)
        assert cache.age("x") is None
        cache.put("x", 1.0)
        clock.advance(12)
        assert cache.age("x") == 12

    def test_clear(self, clock: FakeClock) -> None:
        cache: TTLCache[str, float] = TTLCache(60, clock)
        cache.put("a", 1.0)
        cache.put("b", 2.0)
        assert len(cache) == 2
        cache.clear()
        assert len(cache) == 0
        assert cache.get_stale("a") is None

    def test_non_positive_ttl_rejected(self) -> None:
        with pytest.raises(ValueError):
            TTLCache(0)
