"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager — logging, schema creation, cache and engine cleanup
  2. Router registration — the station webhook
  3. Health check

Running locally:
    CARD_HASH_KEY=dev-key uvicorn fuelauth.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fuelauth import models  # noqa: F401  (registers every table on Base.metadata)
from fuelauth.config import settings
from fuelauth.database import engine, Base, ensure_sqlite_directory
from fuelauth.logging import setup_logging
from fuelauth.routers import webhooks
from fuelauth.services.station_service import station_cache


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
      Configures logging and creates all database tables if they don't
      exist. Table creation is a development convenience; production
      schemas are managed by migrations.

    Shutdown:
      Closes the station cache connection and disposes of the engine.
    """
    # --- Startup ---
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    ensure_sqlite_directory(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield
    # --- Shutdown ---
    await station_cache.close()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Real-time authorization of fuel card purchases reported by stations",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe for load balancers and orchestrators."""
    return {"status": "ok", "version": settings.APP_VERSION}
