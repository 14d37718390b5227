"""
Station service — resolving station codes, with a best-effort Redis cache.

Every webhook carries a station code that must be mapped to a station id
before the idempotency check. Station rows almost never change, so the
mapping is cached in Redis for STATION_CACHE_TTL_SECONDS.

The cache is never authoritative:
  - REDIS_URL unset: no cache, every lookup hits the database
  - Redis down, slow or returning garbage: logged and treated as a miss
  - A cached id is re-checked against the database before use, so a stale
    entry for a deleted station cannot leak into an authorization

A cache problem can therefore only cost latency, never change an outcome.
"""

import logging
import uuid

import redis.asyncio as redis
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fuelauth.config import settings
from fuelauth.models.station import Station


logger = logging.getLogger(__name__)


def _station_cache_key(code: str) -> str:
    return f"fuelauth:station:code:{code}"


class StationCache:
    """Read-through cache of station code -> station id."""

    def __init__(self, redis_url: str | None, ttl_seconds: int):
        self.redis_url = redis_url
        self.ttl_seconds = max(int(ttl_seconds), 1)
        self._client: redis.Redis | None = None

    @property
    def is_enabled(self) -> bool:
        return bool(self.redis_url)

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self.redis_url, decode_responses=True)
        return self._client

    async def get(self, code: str) -> uuid.UUID | None:
        if not self.is_enabled:
            return None
        try:
            raw = await self._get_client().get(_station_cache_key(code))
        except Exception as exc:
            logger.warning("Station cache read failed: %s", exc)
            return None
        if not raw:
            return None
        try:
            return uuid.UUID(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed station cache entry for %s", code)
            return None

    async def set(self, code: str, station_id: uuid.UUID) -> None:
        if not self.is_enabled:
            return
        try:
            await self._get_client().set(_station_cache_key(code), str(station_id), ex=self.ttl_seconds)
        except Exception as exc:
            logger.warning("Station cache write failed: %s", exc)

    async def delete(self, code: str) -> None:
        if not self.is_enabled:
            return
        try:
            await self._get_client().delete(_station_cache_key(code))
        except Exception as exc:
            logger.warning("Station cache delete failed: %s", exc)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


station_cache = StationCache(settings.REDIS_URL, settings.STATION_CACHE_TTL_SECONDS)


async def get_station_by_code(db: AsyncSession, code: str) -> Station | None:
    result = await db.execute(select(Station).where(Station.code == code))
    return result.scalar_one_or_none()


async def resolve_station(
    db: AsyncSession,
    code: str,
    cache: StationCache | None = None,
    auto_create: bool = False,
) -> Station | None:
    """
    Resolve a station code to a Station row.

    Args:
        db: Database session.
        code: Station code from the webhook.
        cache: Station cache (defaults to the module-level cache).
        auto_create: Register unknown codes as new stations instead of
                     returning None.

    Returns:
        The Station, or None if the code is unknown and auto_create is off.
    """
    cache = cache or station_cache

    cached_id = await cache.get(code)
    if cached_id is not None:
        station = await db.get(Station, cached_id)
        if station is not None and station.code == code:
            return station
        await cache.delete(code)

    station = await get_station_by_code(db, code)

    if station is None and auto_create:
        try:
            async with db.begin_nested():
                station = Station(code=code, name=code)
                db.add(station)
        except IntegrityError:
            # Registered concurrently by another delivery
            station = await get_station_by_code(db, code)
        else:
            logger.info("Registered new station %s", code)

    if station is not None:
        await cache.set(code, station.id)
    return station
