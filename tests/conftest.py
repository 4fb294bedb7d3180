"""Shared pytest fixtures for the GreenRoute API test suite.

Persistence, Redis and the intensity provider are replaced by the in-memory
fakes in fakes.py so the suite runs without PostgreSQL, Redis or network access.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from fakes import FIXED_NOW, FakeCache, FakeProvider, FakeSampleStore
from greenroute.main import app


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store() -> FakeSampleStore:
    return FakeSampleStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
async def client() -> AsyncClient:
    """Async test client that talks directly to the ASGI app (no network required)."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
