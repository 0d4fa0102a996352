"""API-specific test fixtures."""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from payhook.core.config import Settings


@pytest.fixture
def settings(log_dir):
    """Settings pointing the payment log at the per-test log_dir."""
    return Settings(_env_file=None, payment_log_dir=str(log_dir), node_env="test")


@pytest.fixture
def app(settings, store):
    """Fresh app wired to the per-test store (frozen clock)."""
    from payhook.main import create_app

    return create_app(settings=settings, store=store)


@pytest.fixture
def api_client(app):
    """FastAPI test client; the context manager runs the app lifespan."""
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def async_client(app):
    """In-process async client for concurrent request tests (no lifespan)."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
