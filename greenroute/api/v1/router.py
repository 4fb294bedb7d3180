from fastapi import APIRouter

from greenroute.api.v1.endpoints import energy, forecasting, intensity, routing, system

api_v1_router = APIRouter()

# System / health endpoints
api_v1_router.include_router(system.router, tags=["System"])

# Forecasts, optimal windows, refresh status
api_v1_router.include_router(forecasting.router, tags=["Forecasting"])

# Green region selection
api_v1_router.include_router(routing.router, tags=["Routing"])

# Workload energy / emissions estimate
api_v1_router.include_router(energy.router, tags=["Energy"])

# Sample ingestion
api_v1_router.include_router(intensity.router, tags=["Intensity"])
