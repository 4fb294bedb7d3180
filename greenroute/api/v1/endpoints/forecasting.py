"""Forecast, optimal-window and refresh-status endpoints.

"No data" is never an error here: forecasts may be empty and the optimal
window falls back to an immediate, zero-savings window.
"""

import logging

from fastapi import APIRouter, Depends, Query

from greenroute.config import settings
from greenroute.dependencies import (
    get_cache,
    get_forecast_engine,
    get_sample_store,
    get_window_optimizer,
)
from greenroute.services.cache import IntensityCache
from greenroute.services.forecasting import ForecastEngine, WindowOptimizer
from greenroute.services.refresh import get_refresh_summary
from greenroute.services.sample_store import CarbonSampleStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forecasting")


@router.get(
    "/refresh/status",
    summary="Last forecast refresh",
    description=(
        "Returns the snapshot written by the most recent refresh cycle and a "
        "summary of per-region refresh runs over the trailing window."
    ),
)
async def get_refresh_status(
    window_hours: int = Query(24, ge=1, le=24 * 30),
    cache: IntensityCache = Depends(get_cache),
    store: CarbonSampleStore = Depends(get_sample_store),
):
    state = await cache.read_snapshot(settings.forecast_refresh_state_key)
    summary = await get_refresh_summary(store, window_hours)
    return {
        "enabled": settings.refresh_enabled,
        "schedule": settings.forecast_refresh_cron,
        "last_refresh": state.model_dump(mode="json") if state else None,
        "window_hours": window_hours,
        "summary": summary.model_dump(mode="json"),
    }


@router.get(
    "/{region}/forecasts",
    summary="Hourly carbon-intensity forecast",
)
async def get_forecasts(
    region: str,
    hours_ahead: int = Query(24, ge=1, le=168),
    engine: ForecastEngine = Depends(get_forecast_engine),
):
    forecasts = await engine.forecast(region, hours_ahead)
    return {
        "region": region,
        "hours_ahead": hours_ahead,
        "forecasts": [f.model_dump(mode="json") for f in forecasts],
    }


@router.get(
    "/{region}/optimal-window",
    summary="Lowest-carbon execution window",
)
async def get_optimal_window(
    region: str,
    duration_hours: int = Query(4, ge=1, le=72),
    look_ahead_hours: int = Query(48, ge=1, le=168),
    optimizer: WindowOptimizer = Depends(get_window_optimizer),
):
    window = await optimizer.find_optimal_window(region, duration_hours, look_ahead_hours)
    return {
        "region": region,
        "duration_hours": duration_hours,
        "look_ahead_hours": look_ahead_hours,
        "window": window.model_dump(mode="json"),
    }
