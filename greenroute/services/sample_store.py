"""PostgreSQL-backed persistence for samples, forecast audit rows and refresh runs.

Every public method opens its own session from the injected factory, so one
store instance can be shared by concurrently running region tasks.
"""

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import Insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from greenroute.models.carbon_intensity import CarbonIntensity, IntensitySource
from greenroute.models.forecast import CarbonForecastRecord
from greenroute.models.refresh import ForecastRefresh
from greenroute.models.region import Region
from greenroute.schemas import CarbonForecast, CarbonSample, RefreshRun

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 500


def build_sample_upsert(rows: list[dict]) -> Insert:
    """INSERT ... ON CONFLICT (region, timestamp) DO UPDATE for sample rows."""
    stmt = pg_insert(CarbonIntensity).values(rows)
    return stmt.on_conflict_do_update(
        index_elements=["region", "timestamp"],
        set_={
            "carbon_intensity": stmt.excluded.carbon_intensity,
            "source": stmt.excluded.source,
        },
    )


def build_forecast_insert(rows: list[dict]) -> Insert:
    """INSERT ... ON CONFLICT DO NOTHING for forecast audit rows."""
    stmt = pg_insert(CarbonForecastRecord).values(rows)
    return stmt.on_conflict_do_nothing(index_elements=["region", "forecast_time"])


class CarbonSampleStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def upsert(
        self,
        region: str,
        timestamp: datetime,
        intensity: float,
        source: IntensitySource = IntensitySource.PROVIDER,
    ) -> None:
        await self.upsert_many(
            [CarbonSample(region=region, timestamp=timestamp, intensity=intensity, source=source)]
        )

    async def upsert_many(self, samples: Sequence[CarbonSample]) -> int:
        """Upsert *samples*; returns the number of distinct (region, timestamp) keys written."""
        # Postgres rejects a statement that touches the same conflict key twice,
        # so collapse duplicates first (the last value wins, as with sequential upserts).
        by_key: dict[tuple[str, datetime], dict] = {}
        for s in samples:
            by_key[(s.region, s.timestamp)] = {
                "region": s.region,
                "timestamp": s.timestamp,
                "carbon_intensity": s.intensity,
                "source": s.source,
            }
        rows = list(by_key.values())
        if not rows:
            return 0

        async with self._session_factory() as session:
            for i in range(0, len(rows), _CHUNK_SIZE):
                await session.execute(build_sample_upsert(rows[i : i + _CHUNK_SIZE]))
            await session.commit()
        return len(rows)

    async def query(self, region: str, since: datetime) -> list[CarbonSample]:
        """Samples for *region* at or after *since*, newest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(CarbonIntensity)
                .where(CarbonIntensity.region == region, CarbonIntensity.timestamp >= since)
                .order_by(CarbonIntensity.timestamp.desc())
            )
            rows = result.scalars().all()

        return [
            CarbonSample(
                region=r.region,
                timestamp=r.timestamp,
                intensity=r.carbon_intensity,
                source=r.source,
            )
            for r in rows
        ]

    async def record_forecasts(
        self,
        forecasts: Sequence[CarbonForecast],
        model_version: str,
        features: Sequence[dict | None] | None = None,
    ) -> None:
        if not forecasts:
            return
        feature_rows = list(features) if features is not None else [None] * len(forecasts)
        rows = [
            {
                "region": f.region,
                "forecast_time": f.forecast_time,
                "predicted_intensity": f.predicted_intensity,
                "confidence": f.confidence,
                "model_version": model_version,
                "features": feat,
            }
            for f, feat in zip(forecasts, feature_rows)
        ]
        async with self._session_factory() as session:
            for i in range(0, len(rows), _CHUNK_SIZE):
                await session.execute(build_forecast_insert(rows[i : i + _CHUNK_SIZE]))
            await session.commit()

    async def record_refresh(self, run: RefreshRun) -> None:
        async with self._session_factory() as session:
            session.add(
                ForecastRefresh(
                    region=run.region,
                    records_ingested=run.records_ingested,
                    forecasts_generated=run.forecasts_generated,
                    status=run.status,
                    message=run.message,
                )
            )
            await session.commit()

    async def refresh_runs_since(
        self, since: datetime, limit: int = 500
    ) -> list[ForecastRefresh]:
        """Refresh rows newer than *since*, most recent first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(ForecastRefresh)
                .where(ForecastRefresh.refreshed_at >= since)
                .order_by(ForecastRefresh.refreshed_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())


class RegionDirectory:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def enabled_regions(self) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Region.code).where(Region.enabled.is_(True)).order_by(Region.code)
            )
            return [code for (code,) in result.all()]
