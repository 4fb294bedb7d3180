import logging

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from greenroute.config import settings
from greenroute.db.session import get_db
from greenroute.dependencies import get_provider, get_redis
from greenroute.services.electricity_maps import ElectricityMapsClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/status",
    summary="Service status",
    description="Returns service version, database and Redis connectivity, and provider configuration.",
)
async def get_status(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    provider: ElectricityMapsClient = Depends(get_provider),
):
    # ── DB liveness ────────────────────────────────────────────────────────────
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("DB health check failed: %s", exc)
        db_status = "error"

    # ── Redis liveness ─────────────────────────────────────────────────────────
    redis_status = "ok"
    try:
        await redis.ping()
    except Exception as exc:
        logger.warning("Redis health check failed: %s", exc)
        redis_status = "error"

    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "db": db_status,
        "redis": redis_status,
        "provider": "configured" if provider.configured else "not_configured",
        "config": {
            "default_intensity_g_per_kwh": settings.default_intensity_g_per_kwh,
            "forecast_lookback_days": settings.forecast_lookback_days,
            "intensity_cache_ttl_seconds": settings.intensity_cache_ttl_seconds,
            "forecast_refresh_enabled": settings.refresh_enabled,
            "forecast_refresh_cron": settings.forecast_refresh_cron,
        },
    }
