"""Celery task definitions.

refresh_forecasts runs one refresh cycle inside a fresh event loop: ingest
history, upsert samples, materialise forecasts, then record runs and the snapshot.
Overlapping triggers (beat tick plus start-up run) are collapsed by the
scheduler's Redis lock.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from greenroute.config import settings
from greenroute.services.cache import IntensityCache, create_redis
from greenroute.services.electricity_maps import intensity_provider
from greenroute.services.forecasting import ForecastEngine
from greenroute.services.refresh import RefreshScheduler
from greenroute.services.sample_store import CarbonSampleStore, RegionDirectory
from greenroute.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ── Entry point ────────────────────────────────────────────────────────────────

@celery_app.task(bind=True, name="greenroute.refresh_forecasts", max_retries=0)
def refresh_forecasts(self) -> None:
    """Celery entry point; runs the async refresh cycle in a new event loop."""
    asyncio.run(_run_refresh())


# ── Async cycle ────────────────────────────────────────────────────────────────

def build_refresh_scheduler(
    session_factory: async_sessionmaker[AsyncSession], cache: IntensityCache
) -> RefreshScheduler:
    store = CarbonSampleStore(session_factory)
    return RefreshScheduler(
        provider=intensity_provider,
        store=store,
        engine=ForecastEngine(store, intensity_provider),
        cache=cache,
        regions=RegionDirectory(session_factory),
    )


async def _run_refresh() -> None:
    # Engine and Redis client are bound to this event loop, so build them per run
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    redis = create_redis()
    try:
        session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
        scheduler = build_refresh_scheduler(session_factory, IntensityCache(redis))
        await scheduler.run_refresh_cycle()
    finally:
        await redis.aclose()
        await engine.dispose()
