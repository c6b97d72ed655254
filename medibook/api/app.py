"""FastAPI application for MediBook."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medibook import __version__
from medibook.api.dependencies import get_store
from medibook.api.errors import register_exception_handlers
from medibook.api.middleware import APIKeyMiddleware, RequestLoggingMiddleware
from medibook.api.routes import appointments, directory, health, leaves, schedules
from medibook.config import Settings, get_settings
from medibook.core.database import dispose_engine, init_db
from medibook.scheduling import InMemorySchedulingStore, KeyedLock

logger = logging.getLogger(__name__)


def _install_demo_store(app: FastAPI) -> InMemorySchedulingStore:
    store = InMemorySchedulingStore()
    app.dependency_overrides[get_store] = lambda: store
    app.state.demo_mode = True
    logger.warning(
        "DEMO MODE: serving from a volatile in-memory store. "
        "Nothing is persisted and state is per-process."
    )
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings: Settings = app.state.settings
    logger.info("Starting MediBook API")

    if settings.demo_mode:
        _install_demo_store(app)
    elif settings.create_tables_on_startup:
        await init_db()

    logger.info("MediBook API started successfully")

    yield

    logger.info("Shutting down MediBook API")
    if not settings.demo_mode:
        await dispose_engine()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="MediBook API",
        description="Doctor availability and appointment booking",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.demo_mode = False
    # Shared by every request so booking commits serialize per doctor and date.
    app.state.booking_locks = KeyedLock()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    if settings.api_key:
        app.add_middleware(APIKeyMiddleware, api_key=settings.api_key)

    app.include_router(health.router, tags=["health"])
    app.include_router(directory.router, prefix="/api", tags=["directory"])
    app.include_router(schedules.router, prefix="/api", tags=["schedules"])
    app.include_router(leaves.router, prefix="/api", tags=["leaves"])
    app.include_router(appointments.router, prefix="/api", tags=["appointments"])

    register_exception_handlers(app, debug=settings.debug_mode)

    return app
