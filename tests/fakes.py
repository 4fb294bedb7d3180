"""In-memory stand-ins for the sample store, provider, cache and Redis client."""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

from greenroute.schemas import CarbonSample, IntensityReading

FIXED_NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)  # a Wednesday


class FakeSampleStore:
    def __init__(self) -> None:
        self.samples: dict[tuple[str, datetime], object] = {}
        self.recorded_forecasts: list[tuple] = []
        self.runs: list = []

    async def upsert(self, region, timestamp, intensity, source=None):
        kwargs = {"source": source} if source is not None else {}
        await self.upsert_many(
            [CarbonSample(region=region, timestamp=timestamp, intensity=intensity, **kwargs)]
        )

    async def upsert_many(self, samples) -> int:
        keys = set()
        for s in samples:
            self.samples[(s.region, s.timestamp)] = s
            keys.add((s.region, s.timestamp))
        return len(keys)

    async def query(self, region, since):
        rows = [s for (r, ts), s in self.samples.items() if r == region and ts >= since]
        return sorted(rows, key=lambda s: s.timestamp, reverse=True)

    async def record_forecasts(self, forecasts, model_version, features=None):
        self.recorded_forecasts.append((list(forecasts), model_version, features))

    async def record_refresh(self, run):
        self.runs.append(
            SimpleNamespace(
                id=uuid.uuid4(),
                region=run.region,
                records_ingested=run.records_ingested,
                forecasts_generated=run.forecasts_generated,
                status=run.status,
                message=run.message,
                refreshed_at=FIXED_NOW,
            )
        )

    async def refresh_runs_since(self, since, limit=500):
        rows = [r for r in self.runs if r.refreshed_at >= since]
        return list(reversed(rows))[:limit]


class FakeProvider:
    def __init__(self, configured: bool = True, default_intensity: float = 400.0) -> None:
        self.configured = configured
        self.default_intensity = default_intensity
        self.current_values: dict[str, float | None] = {}
        self.histories: dict[str, list[IntensityReading] | Exception] = {}
        self.native_points: dict[str, list[IntensityReading]] = {}
        self.current_calls: list[str] = []
        self.history_calls: list[str] = []

    async def current(self, region):
        self.current_calls.append(region)
        value = self.current_values.get(region)
        if value is None:
            return None
        return IntensityReading(region=region, intensity=value, timestamp=FIXED_NOW)

    async def history(self, region, start, end):
        self.history_calls.append(region)
        result = self.histories.get(region, [])
        if isinstance(result, Exception):
            raise result
        return result

    async def native_forecast(self, region):
        if not self.configured:
            return []
        return self.native_points.get(region, [])


class FakeCache:
    def __init__(self) -> None:
        self.intensities: dict[str, float] = {}
        self.snapshots: dict = {}
        self.locks: dict[str, object] = {}

    async def get_intensity(self, region):
        return self.intensities.get(region)

    async def set_intensity(self, region, intensity):
        self.intensities[region] = intensity

    async def write_snapshot(self, key, state):
        self.snapshots[key] = state

    async def read_snapshot(self, key):
        return self.snapshots.get(key)

    async def acquire_lock(self, key, ttl_seconds):
        if key in self.locks:
            return None
        lock = SimpleNamespace(name=key)
        self.locks[key] = lock
        return lock

    async def release_lock(self, lock):
        if self.locks.get(lock.name) is lock:
            del self.locks[lock.name]


class FakeRegions:
    def __init__(self, codes: list[str]) -> None:
        self.codes = codes

    async def enabled_regions(self):
        return list(self.codes)


class FakeRedis:
    def __init__(self, healthy: bool = True) -> None:
        self.healthy = healthy

    async def ping(self):
        if not self.healthy:
            raise ConnectionError("redis unreachable")
        return True


class FakeSession:
    async def execute(self, statement):
        return None
