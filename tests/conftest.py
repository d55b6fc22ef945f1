import httpx
import pytest
from httpx import ASGITransport

from ratesync.services.store import InMemoryInventoryStore

CRON_SECRET = "test-cron-secret"
WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture
def mock_env(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", CRON_SECRET)
    monkeypatch.setenv("WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("BATCH_CONCURRENCY", "1")
    monkeypatch.setenv("EXPEDIA_CLIENT_ID", "")
    monkeypatch.setenv("EXPEDIA_CLIENT_SECRET", "")


@pytest.fixture
def store():
    return InMemoryInventoryStore()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture
async def client(mock_env):
    from ratesync.main import app, lifespan

    async with lifespan(app):
        async with httpx.AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as c:
            yield c
