"""Scheduled forecast refresh.

One cycle pulls recent history for every enabled region, upserts it into the
sample store, materialises forecasts, and records a run row per region. Regions
are processed concurrently and fail independently. The aggregate snapshot is
written only after every region task has finished.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone

from greenroute.config import settings
from greenroute.models.carbon_intensity import IntensitySource
from greenroute.models.refresh import RefreshStatus
from greenroute.schemas import CarbonSample, RefreshRun, RefreshState, RefreshSummary
from greenroute.services.forecasting import round_half_up

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshScheduler:
    def __init__(
        self,
        provider,
        store,
        engine,
        cache,
        regions,
        *,
        horizon_hours: int | None = None,
        history_hours: int | None = None,
        state_key: str | None = None,
        lock_ttl_seconds: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._provider = provider
        self._store = store
        self._engine = engine
        self._cache = cache
        self._regions = regions
        self.horizon_hours = horizon_hours or settings.forecast_refresh_hours
        self.history_hours = history_hours or settings.forecast_refresh_history_hours
        self.state_key = state_key or settings.forecast_refresh_state_key
        self.lock_ttl_seconds = lock_ttl_seconds or settings.forecast_refresh_lock_ttl_seconds
        self.clock = clock

    @property
    def lock_key(self) -> str:
        return f"{self.state_key}:lock"

    async def run_refresh_cycle(self) -> None:
        """Run one refresh cycle unless another one currently holds the lock."""
        lock = await self._cache.acquire_lock(self.lock_key, self.lock_ttl_seconds)
        if lock is None:
            logger.warning("Forecast refresh already in progress, skipping this trigger")
            return
        try:
            await self._run_cycle()
        finally:
            await self._cache.release_lock(lock)

    async def _run_cycle(self) -> None:
        regions = await self._regions.enabled_regions()
        logger.info("Forecast refresh started for %d regions", len(regions))

        # _refresh_region never raises, so gather returns one run per region
        runs: list[RefreshRun] = await asyncio.gather(
            *(self._refresh_region(region) for region in regions)
        )

        failures = [r for r in runs if r.status == RefreshStatus.FAILURE]
        state = RefreshState(
            timestamp=self.clock(),
            total_regions=len(regions),
            total_records=sum(r.records_ingested for r in runs),
            total_forecasts=sum(r.forecasts_generated for r in runs),
            status=RefreshStatus.FAILURE if failures else RefreshStatus.SUCCESS,
            message=failures[-1].message if failures else None,
        )
        await self._cache.write_snapshot(self.state_key, state)
        logger.info(
            "Forecast refresh finished: %d regions, %d records, %d forecasts, %d failed",
            state.total_regions,
            state.total_records,
            state.total_forecasts,
            len(failures),
        )

    async def _refresh_region(self, region: str) -> RefreshRun:
        try:
            ingested, generated = await self._ingest_region(region)
            run = RefreshRun(
                region=region,
                records_ingested=ingested,
                forecasts_generated=generated,
                status=RefreshStatus.SUCCESS,
            )
        except Exception as exc:
            logger.exception("Forecast refresh failed for %s", region)
            run = RefreshRun(
                region=region,
                status=RefreshStatus.FAILURE,
                message=str(exc) or exc.__class__.__name__,
            )

        try:
            await self._store.record_refresh(run)
        except Exception:
            logger.exception("Could not record refresh run for %s", region)
        return run

    async def _ingest_region(self, region: str) -> tuple[int, int]:
        end = self.clock()
        start = end - timedelta(hours=self.history_hours)
        history = await self._provider.history(region, start, end)

        samples = [
            CarbonSample(
                region=point.region or region,
                timestamp=point.timestamp,
                intensity=round_half_up(point.intensity),
                source=IntensitySource.PROVIDER,
            )
            for point in history
        ]
        await self._store.upsert_many(samples)

        forecasts = await self._engine.forecast(region, self.horizon_hours)
        return len(samples), len(forecasts)


# ── Reporting ──────────────────────────────────────────────────────────────────

def summarize_runs(runs: Sequence) -> RefreshSummary:
    """Aggregate refresh rows ordered most recent first."""
    if not runs:
        return RefreshSummary()

    success_count = sum(1 for r in runs if r.status == RefreshStatus.SUCCESS)
    last = runs[0]
    return RefreshSummary(
        run_count=len(runs),
        success_count=success_count,
        failure_count=len(runs) - success_count,
        total_records=sum(r.records_ingested for r in runs),
        total_forecasts=sum(r.forecasts_generated for r in runs),
        last_run_at=last.refreshed_at,
        last_status=last.status,
        last_message=last.message,
    )


async def get_refresh_summary(
    store, window_hours: int, now: datetime | None = None
) -> RefreshSummary:
    since = (now or _utcnow()) - timedelta(hours=window_hours)
    runs = await store.refresh_runs_since(since)
    return summarize_runs(runs)
