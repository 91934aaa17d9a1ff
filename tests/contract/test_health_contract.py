from __future__ import annotations

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool


@pytest_asyncio.fixture
async def storage():
    from services.registry.app.db import Database
    from services.registry.app.storage import Storage

    class NullObjectStore:
        async def put(self, key, body, length):
            raise AssertionError("unexpected upload")

        async def delete(self, key):
            raise AssertionError("unexpected delete")

        def url_for(self, key):
            return key

    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    storage = Storage(Database(engine), NullObjectStore())
    yield storage
    await storage.close()


@pytest.fixture()
def registry_app(storage):
    from services.registry.app.main import create_app

    return create_app(storage)


@pytest.mark.asyncio
async def test_healthz_ok(registry_app):
    transport = httpx.ASGITransport(app=registry_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.get("/healthz")
        assert r.status_code == 200
        assert r.json() == {"ok": True}


@pytest.mark.asyncio
async def test_healthz_reports_unavailable_store(registry_app, storage, monkeypatch):
    async def broken() -> None:
        raise ConnectionError("connection refused")

    monkeypatch.setattr(storage.db, "check_health", broken)

    transport = httpx.ASGITransport(app=registry_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.get("/healthz")
        assert r.status_code == 503
        assert r.json() == {"detail": "store unavailable"}


@pytest.mark.asyncio
async def test_metrics_exposes_storage_histogram(registry_app):
    transport = httpx.ASGITransport(app=registry_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        await client.get("/healthz")
        r = await client.get("/metrics")
        assert r.status_code == 200
        assert "storage_operation_latency_ms" in r.text


def test_tracing_exporter_follows_setting():
    from opentelemetry import trace
    from opentelemetry.sdk.trace import TracerProvider

    from services.registry.app.main import SETTINGS

    assert SETTINGS.tracing_enabled is False
    assert not isinstance(trace.get_tracer_provider(), TracerProvider)
