"""Tests for cache bindings."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
import redis

from janitor.errors import StoreUnavailable
from janitor.store.cache import MemoryCache, RedisCache
from tests.fixtures.resources import FakeClock


class TestMemoryCache:
    @pytest.fixture
    def clock(self) -> FakeClock:
        return FakeClock()

    @pytest.fixture
    def cache(self, clock) -> MemoryCache:
        return MemoryCache(clock=clock)

    def test_set_operations(self, cache) -> None:
        """Test add, read, membership and remove on sets."""
        cache.add("s", "b")
        cache.add("s", "a")
        cache.add("s", "a")

        assert cache.read_set("s") == ["a", "b"]
        assert cache.is_member("s", "a")

        cache.remove("s", "a")

        assert cache.read_set("s") == ["b"]
        assert not cache.is_member("s", "a")

    def test_missing_set_reads_empty(self, cache) -> None:
        """Test missing set reads empty."""
        assert cache.read_set("missing") == []
        assert not cache.exists("missing")

    def test_empty_set_no_longer_exists(self, cache) -> None:
        """Test empty set no longer exists."""
        cache.add("s", "a")
        cache.remove("s", "a")

        assert not cache.exists("s")

    def test_create_with_expiry_is_create_if_absent(self, cache, clock) -> None:
        """Test create with expiry is create if absent."""
        first = clock() + timedelta(hours=24)

        assert cache.create_with_expiry("lease", "24h", first) is True
        assert cache.create_with_expiry("lease", "1h", clock() + timedelta(hours=1)) is False
        assert cache.expiry("lease") == first

    def test_key_expires_with_clock(self, cache, clock) -> None:
        """Test key expires with clock."""
        cache.create_with_expiry("lease", "1h", clock() + timedelta(hours=1))
        assert cache.exists("lease")

        clock.advance(hours=1)

        assert not cache.exists("lease")
        assert cache.expiry("lease") is None

    def test_expired_key_can_be_recreated(self, cache, clock) -> None:
        """Test expired key can be recreated."""
        cache.create_with_expiry("lease", "1h", clock() + timedelta(hours=1))
        clock.advance(hours=2)

        assert cache.create_with_expiry("lease", "1h", clock() + timedelta(hours=1)) is True

    def test_key_without_expiry_never_expires(self, cache, clock) -> None:
        """Test a lease created without expiry outlives any clock advance."""
        assert cache.create_with_expiry("lease", "0", None) is True

        clock.advance(days=3650)

        assert cache.exists("lease")
        assert cache.create_with_expiry("lease", "0", None) is False


class TestRedisCache:
    @pytest.fixture
    def client(self) -> Mock:
        return Mock(spec=redis.Redis)

    @pytest.fixture
    def cache(self, client) -> RedisCache:
        return RedisCache(client=client)

    def test_add_and_remove(self, cache, client) -> None:
        """Test add and remove."""
        cache.add("k", "v")
        cache.remove("k", "v")

        client.sadd.assert_called_once_with("k", "v")
        client.srem.assert_called_once_with("k", "v")

    def test_read_set_scans(self, cache, client) -> None:
        """Test read set scans."""
        client.sscan_iter.return_value = iter(["a", b"b"])

        assert cache.read_set("k") == ["a", "b"]
        client.sscan_iter.assert_called_once_with("k", count=10)

    def test_is_member(self, cache, client) -> None:
        """Test membership check returns a bool."""
        client.sismember.return_value = 1

        assert cache.is_member("k", "v") is True

    def test_create_with_expiry_uses_set_nx_exat(self, cache, client) -> None:
        """Test create with expiry uses set NX EXAT."""
        client.set.return_value = True
        expiry = datetime(2024, 6, 2, tzinfo=timezone.utc)

        assert cache.create_with_expiry("lease", "24h", expiry) is True
        client.set.assert_called_once_with("lease", "24h", nx=True, exat=int(expiry.timestamp()))

    def test_create_with_expiry_existing_key(self, cache, client) -> None:
        """Test create with expiry existing key."""
        client.set.return_value = None

        assert cache.create_with_expiry("lease", "24h", datetime.now(timezone.utc)) is False

    def test_create_without_expiry_uses_plain_set_nx(self, cache, client) -> None:
        """Test a never-expiring lease is SET NX without EXAT."""
        client.set.return_value = True

        assert cache.create_with_expiry("lease", "0", None) is True
        client.set.assert_called_once_with("lease", "0", nx=True)

    def test_exists(self, cache, client) -> None:
        """Test exists maps the key count to a bool."""
        client.exists.return_value = 1
        assert cache.exists("k") is True

        client.exists.return_value = 0
        assert cache.exists("k") is False

    @pytest.mark.parametrize("error", [redis.exceptions.ConnectionError("down"), redis.exceptions.TimeoutError("slow")])
    def test_connection_failures_raise_store_unavailable(self, cache, client, error) -> None:
        """Test connection failures raise store unavailable."""
        client.sadd.side_effect = error

        with pytest.raises(StoreUnavailable):
            cache.add("k", "v")

    def test_ping(self, cache, client) -> None:
        """Test ping failure raises StoreUnavailable."""
        client.ping.side_effect = redis.exceptions.ConnectionError("refused")

        with pytest.raises(StoreUnavailable):
            cache.ping()
