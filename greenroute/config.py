from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ── Application ────────────────────────────────────────────────────────────
    app_name: str = "GreenRoute API"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"  # development | production | test

    # ── Database ───────────────────────────────────────────────────────────────
    database_url: str = "postgresql+asyncpg://greenroute:greenroute@db:5432/greenroute"
    db_pool_size: int = 10
    db_max_overflow: int = 20

    # ── Redis / Celery ─────────────────────────────────────────────────────────
    redis_url: str = "redis://redis:6379/0"

    # ── Electricity Maps ───────────────────────────────────────────────────────
    electricity_maps_api_key: str | None = None  # None: provider degrades to default
    electricity_maps_base_url: str = "https://api.electricitymap.org"
    electricity_maps_timeout_seconds: float = 15.0

    # Used whenever the provider cannot answer (gCO2-eq/kWh)
    default_intensity_g_per_kwh: float = 400.0

    # ── Forecasting ────────────────────────────────────────────────────────────
    forecast_lookback_days: int = 7
    forecast_min_history: int = 24
    native_forecast_confidence: float = 0.7
    forecast_model_version: str = "v1.0"

    # ── Routing ────────────────────────────────────────────────────────────────
    intensity_cache_ttl_seconds: int = 15 * 60
    default_latency_ms: float = 100.0

    # ── Scheduled refresh ──────────────────────────────────────────────────────
    # None: enabled everywhere except the test environment
    forecast_refresh_enabled: bool | None = None
    forecast_refresh_cron: str = "*/30 * * * *"
    forecast_refresh_hours: int = 24
    forecast_refresh_history_hours: int = 24
    forecast_refresh_lock_ttl_seconds: int = 25 * 60
    forecast_refresh_state_key: str = "forecast:refresh:last"

    @field_validator("native_forecast_confidence")
    @classmethod
    def validate_native_confidence(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("native_forecast_confidence must be between 0 and 1")
        return v

    @field_validator("forecast_refresh_cron")
    @classmethod
    def validate_cron(cls, v: str) -> str:
        if len(v.split()) != 5:
            raise ValueError("forecast_refresh_cron must have five fields (m h dom mon dow)")
        return v

    @property
    def refresh_enabled(self) -> bool:
        if self.forecast_refresh_enabled is not None:
            return self.forecast_refresh_enabled
        return self.environment != "test"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
