from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request

from services.registry.app.logging import configure_logging, logger
from services.registry.app.observability import add_metrics_middleware, instrument_sqlalchemy, setup_tracing
from services.registry.app.settings import SETTINGS
from services.registry.app.storage import Storage


@asynccontextmanager
async def _storage_lifespan(app: FastAPI) -> AsyncIterator[None]:
    storage = Storage.from_settings(SETTINGS)
    instrument_sqlalchemy(storage.db.engine)
    app.state.storage = storage
    try:
        yield
    finally:
        await storage.close()


def create_app(storage: Storage | None = None) -> FastAPI:
    """
    Liveness surface of the registry.

    Without `storage`, one is built from the environment at startup and closed on shutdown.
    An injected storage (tests) is used as-is and left open.
    """
    if storage is None:
        app = FastAPI(title="Update Registry API", version="0.1.0", lifespan=_storage_lifespan)
    else:
        app = FastAPI(title="Update Registry API", version="0.1.0")
        app.state.storage = storage
    add_metrics_middleware(app, service_name="registry")

    @app.get("/healthz")
    async def healthz(request: Request) -> dict:
        try:
            await request.app.state.storage.check_health()
        except Exception as e:
            logger.error("health_check_failed", error=str(e))
            raise HTTPException(status_code=503, detail="store unavailable") from e
        return {"ok": True}

    return app


configure_logging(SETTINGS.log_level)
app = create_app()
if SETTINGS.tracing_enabled:
    setup_tracing(app, service_name="registry")
