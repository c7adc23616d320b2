"""
Pedidos FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend import db, deps
from backend.config import settings
from backend.repos.postgres_store import PostgresRecordStore
from backend.repos.record_store import MemoryRecordStore
from backend.routes import auth_routes
from backend.routes import orders as order_routes
from backend.routes import ws as ws_routes
from backend.services.identity import IdentityToolkitProvider, identity_config_looks_placeholder

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Install the record store (Postgres pool + LISTEN, or in-memory)
    - Install the identity provider client
    - Close both on shutdown
    """
    # Startup
    postgres_store: PostgresRecordStore | None = None
    if settings.USE_MEMORY_STORE or settings.TESTING:
        deps.set_store(MemoryRecordStore())
        logger.info("Using in-memory record store")
    else:
        await db.init_pool()
        postgres_store = PostgresRecordStore()
        deps.set_store(postgres_store)
        logger.info("Database pool initialized")

    if identity_config_looks_placeholder():
        logger.warning("Identity provider is not configured (IDENTITY_API_KEY / IDENTITY_PROJECT_ID)")
    identity = IdentityToolkitProvider()
    deps.set_identity_provider(identity)

    yield

    # Shutdown
    await identity.aclose()
    deps.set_identity_provider(None)
    if postgres_store is not None:
        await postgres_store.close()
        await db.close_pool()
        logger.info("Database pool closed")
    deps.set_store(None)


app = FastAPI(
    title="Pedidos",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(auth_routes.router)
app.include_router(order_routes.router)
app.include_router(ws_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
