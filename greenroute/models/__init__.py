# Import all ORM models here so Alembic's env.py picks up their metadata automatically.
from greenroute.models.carbon_intensity import CarbonIntensity, IntensitySource
from greenroute.models.forecast import CarbonForecastRecord
from greenroute.models.refresh import ForecastRefresh, RefreshStatus
from greenroute.models.region import Region

__all__ = [
    "CarbonIntensity",
    "IntensitySource",
    "CarbonForecastRecord",
    "ForecastRefresh",
    "RefreshStatus",
    "Region",
]
