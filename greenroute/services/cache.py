"""Redis-backed intensity cache and refresh-state snapshot.

Intensity reads and writes are best-effort: a Redis error is logged and treated
as a cache miss. Snapshot writes propagate so a failed refresh bookkeeping step
is visible to the worker.
"""

import logging
from datetime import datetime

import redis.asyncio as aioredis
from redis.asyncio.lock import Lock
from redis.exceptions import LockError, RedisError

from greenroute.config import settings
from greenroute.models.refresh import RefreshStatus
from greenroute.schemas import RefreshState

logger = logging.getLogger(__name__)

_INTENSITY_KEY = "carbon:{region}"


def create_redis(url: str | None = None) -> aioredis.Redis:
    return aioredis.from_url(url or settings.redis_url, decode_responses=True)


class IntensityCache:
    def __init__(self, redis: aioredis.Redis, ttl_seconds: int | None = None) -> None:
        self._redis = redis
        self.ttl_seconds = ttl_seconds or settings.intensity_cache_ttl_seconds

    # ── Generic key/value ──────────────────────────────────────────────────────

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(key)
        except RedisError as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._redis.setex(key, ttl_seconds, value)
        except RedisError as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)

    # ── Intensity entries ──────────────────────────────────────────────────────

    async def get_intensity(self, region: str) -> float | None:
        raw = await self.get(_INTENSITY_KEY.format(region=region))
        if raw is None:
            return None
        try:
            return float(raw)
        except ValueError:
            logger.warning("Ignoring malformed cached intensity for %s: %r", region, raw)
            return None

    async def set_intensity(self, region: str, intensity: float) -> None:
        await self.set_with_ttl(
            _INTENSITY_KEY.format(region=region), repr(float(intensity)), self.ttl_seconds
        )

    # ── Refresh snapshot ───────────────────────────────────────────────────────

    async def write_snapshot(self, key: str, state: RefreshState) -> None:
        await self._redis.hset(
            key,
            mapping={
                "timestamp": state.timestamp.isoformat(),
                "totalRegions": str(state.total_regions),
                "totalRecords": str(state.total_records),
                "totalForecasts": str(state.total_forecasts),
                "status": state.status.value,
                "message": state.message or "",
            },
        )

    async def read_snapshot(self, key: str) -> RefreshState | None:
        data = await self._redis.hgetall(key)
        if not data:
            return None
        return RefreshState(
            timestamp=datetime.fromisoformat(data.get("timestamp", "1970-01-01T00:00:00+00:00")),
            total_regions=int(data.get("totalRegions", 0)),
            total_records=int(data.get("totalRecords", 0)),
            total_forecasts=int(data.get("totalForecasts", 0)),
            status=RefreshStatus(data.get("status", RefreshStatus.FAILURE.value)),
            message=data.get("message") or None,
        )

    # ── Single-flight lock ─────────────────────────────────────────────────────

    async def acquire_lock(self, key: str, ttl_seconds: int) -> Lock | None:
        """Non-blocking acquire; returns the held lock, or None when someone else holds it."""
        lock = self._redis.lock(key, timeout=ttl_seconds, blocking=False)
        if await lock.acquire():
            return lock
        return None

    async def release_lock(self, lock: Lock) -> None:
        # Release is token-checked server-side, so a lock that expired and was
        # taken by another run is left alone.
        try:
            await lock.release()
        except LockError as exc:
            logger.warning("Lock %s was no longer held at release: %s", lock.name, exc)


# Module-level client shared by the API process; workers create their own per run
redis_client = create_redis()
