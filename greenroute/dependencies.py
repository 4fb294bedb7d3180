"""FastAPI dependency providers for the forecasting and routing services.

Tests swap any of these out through ``app.dependency_overrides``.
"""

import redis.asyncio as aioredis
from fastapi import Depends

from greenroute.db.session import AsyncSessionLocal
from greenroute.services.cache import IntensityCache, redis_client
from greenroute.services.electricity_maps import ElectricityMapsClient, intensity_provider
from greenroute.services.energy import EnergyEstimator
from greenroute.services.forecasting import ForecastEngine, WindowOptimizer
from greenroute.services.routing import RoutingScorer
from greenroute.services.sample_store import CarbonSampleStore

_sample_store = CarbonSampleStore(AsyncSessionLocal)


def get_provider() -> ElectricityMapsClient:
    return intensity_provider


def get_sample_store() -> CarbonSampleStore:
    return _sample_store


def get_redis() -> aioredis.Redis:
    return redis_client


def get_cache(redis: aioredis.Redis = Depends(get_redis)) -> IntensityCache:
    return IntensityCache(redis)


def get_forecast_engine(
    store: CarbonSampleStore = Depends(get_sample_store),
    provider: ElectricityMapsClient = Depends(get_provider),
) -> ForecastEngine:
    return ForecastEngine(store, provider)


def get_window_optimizer(
    engine: ForecastEngine = Depends(get_forecast_engine),
) -> WindowOptimizer:
    return WindowOptimizer(engine)


def get_routing_scorer(
    provider: ElectricityMapsClient = Depends(get_provider),
    cache: IntensityCache = Depends(get_cache),
    store: CarbonSampleStore = Depends(get_sample_store),
) -> RoutingScorer:
    return RoutingScorer(provider, cache, store)


def get_energy_estimator(
    scorer: RoutingScorer = Depends(get_routing_scorer),
) -> EnergyEstimator:
    return EnergyEstimator(scorer.resolve_intensity)
