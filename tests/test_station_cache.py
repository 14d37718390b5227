"""
Tests for the Redis-backed station cache.

A fake client stands in for Redis. These tests verify:
  - Resolved stations are written to the cache with the configured TTL
  - Cached ids are used, but re-checked against the database
  - A stale entry is dropped and the database answer is used instead
  - A failing Redis never changes an authorization outcome
"""

import uuid

from fuelauth.results import Approved
from fuelauth.services import station_service, webhook_service
from fuelauth.services.station_service import StationCache


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis."""

    def __init__(self):
        self.store = {}
        self.expiries = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.expiries[key] = ex

    async def delete(self, key):
        self.store.pop(key, None)

    async def aclose(self):
        pass


class BrokenRedis:
    """Every call fails, as if Redis were unreachable."""

    async def get(self, key):
        raise ConnectionError("redis unreachable")

    async def set(self, key, value, ex=None):
        raise ConnectionError("redis unreachable")

    async def delete(self, key):
        raise ConnectionError("redis unreachable")

    async def aclose(self):
        pass


def cache_with(client, ttl_seconds=120):
    cache = StationCache("redis://cache.test:6379/0", ttl_seconds=ttl_seconds)
    cache._client = client
    return cache


class TestStationCache:

    async def test_resolved_station_is_cached(self, fleet, session_factory):
        station = await fleet.station("STN-777")
        redis = FakeRedis()
        cache = cache_with(redis)

        async with session_factory() as db:
            found = await station_service.resolve_station(db, "STN-777", cache=cache)

        assert found.id == station.id
        assert redis.store == {"fuelauth:station:code:STN-777": str(station.id)}
        assert redis.expiries["fuelauth:station:code:STN-777"] == 120

    async def test_stale_entry_is_ignored(self, fleet, session_factory):
        station = await fleet.station("STN-777")
        redis = FakeRedis()
        redis.store["fuelauth:station:code:STN-777"] = str(uuid.uuid4())
        cache = cache_with(redis)

        async with session_factory() as db:
            found = await station_service.resolve_station(db, "STN-777", cache=cache)

        assert found.id == station.id
        assert redis.store["fuelauth:station:code:STN-777"] == str(station.id)

    async def test_malformed_entry_is_a_miss(self, fleet, session_factory):
        station = await fleet.station("STN-777")
        redis = FakeRedis()
        redis.store["fuelauth:station:code:STN-777"] = "not-a-uuid"

        async with session_factory() as db:
            found = await station_service.resolve_station(db, "STN-777", cache=cache_with(redis))

        assert found.id == station.id

    async def test_disabled_cache_never_connects(self):
        cache = StationCache(None, ttl_seconds=60)

        assert not cache.is_enabled
        assert await cache.get("STN-001") is None
        await cache.set("STN-001", uuid.uuid4())
        assert cache._client is None

    async def test_broken_redis_does_not_change_the_outcome(
        self, funded_card, fleet, session_factory, make_event
    ):
        org, _ = funded_card

        result = await webhook_service.process_incoming(
            make_event(amount_cents="1500"),
            idempotency_key="cache-down",
            session_factory=session_factory,
            cache=cache_with(BrokenRedis()),
        )

        assert isinstance(result, Approved)
        assert await fleet.balance(org) == 5_000_000 - 1_500
