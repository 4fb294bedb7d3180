"""Tests for system / health endpoints and runtime configuration."""

import pytest
from httpx import AsyncClient
from pydantic import ValidationError

from fakes import FakeProvider, FakeRedis, FakeSession
from greenroute.config import Settings, settings
from greenroute.db.session import get_db
from greenroute.dependencies import get_provider, get_redis
from greenroute.main import app
from greenroute.workers.celery_app import celery_app, cron_schedule


@pytest.fixture
def healthy_backends():
    async def _session():
        yield FakeSession()

    app.dependency_overrides[get_db] = _session
    app.dependency_overrides[get_redis] = lambda: FakeRedis()
    app.dependency_overrides[get_provider] = lambda: FakeProvider(configured=False)


# ── GET /health ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ── GET /api/v1/status ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_status_reports_backends(client: AsyncClient, healthy_backends):
    response = await client.get("/api/v1/status")
    assert response.status_code == 200

    data = response.json()
    assert data["service"] == settings.app_name
    assert data["version"] == settings.app_version
    assert data["db"] == "ok"
    assert data["redis"] == "ok"
    assert data["provider"] == "not_configured"

    cfg = data["config"]
    assert cfg["default_intensity_g_per_kwh"] == 400.0
    assert cfg["forecast_lookback_days"] == 7
    assert cfg["intensity_cache_ttl_seconds"] == 900
    assert cfg["forecast_refresh_cron"] == "*/30 * * * *"


@pytest.mark.asyncio
async def test_status_reports_redis_outage(client: AsyncClient, healthy_backends):
    app.dependency_overrides[get_redis] = lambda: FakeRedis(healthy=False)
    response = await client.get("/api/v1/status")
    assert response.status_code == 200
    assert response.json()["redis"] == "error"


# ── GET /docs and /redoc (OpenAPI UI) ─────────────────────────────────────────

@pytest.mark.asyncio
async def test_openapi_docs_accessible(client: AsyncClient):
    response = await client.get("/docs")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_openapi_lists_routes(client: AsyncClient):
    paths = (await client.get("/openapi.json")).json()["paths"]
    assert "/api/v1/route/green" in paths
    assert "/api/v1/forecasting/{region}/forecasts" in paths
    assert "/api/v1/forecasting/{region}/optimal-window" in paths


# ── Config validation ──────────────────────────────────────────────────────────

def test_refresh_defaults():
    cfg = Settings(_env_file=None)
    assert cfg.forecast_refresh_cron == "*/30 * * * *"
    assert cfg.forecast_refresh_hours == 24
    assert cfg.intensity_cache_ttl_seconds == 900


def test_refresh_disabled_in_test_environment():
    assert Settings(_env_file=None, environment="test").refresh_enabled is False
    assert Settings(_env_file=None, environment="production").refresh_enabled is True


def test_refresh_flag_overrides_environment():
    cfg = Settings(_env_file=None, environment="test", forecast_refresh_enabled=True)
    assert cfg.refresh_enabled is True


def test_cron_must_have_five_fields():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, forecast_refresh_cron="*/30 * *")


def test_native_confidence_bounds():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, native_forecast_confidence=1.5)


# ── Celery schedule ────────────────────────────────────────────────────────────

def test_cron_schedule_fields():
    schedule = cron_schedule("*/30 * * * *")
    assert schedule.minute == {0, 30}
    assert len(schedule.hour) == 24


def test_refresh_task_registered():
    import greenroute.workers.tasks  # noqa: F401

    assert "greenroute.refresh_forecasts" in celery_app.tasks
