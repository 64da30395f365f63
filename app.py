"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the document store, allocation services and router, and runs
startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from portal.controllers.allocation_controller import router as allocation_router
from portal.repository.document_store import DocumentStore
from portal.repository.resource_repository import ResourceRepository
from portal.services.allocation_service import AllocationService
from portal.services.cleanup_service import CleanupService
from portal.services.migration_service import MigrationService
from portal.services.reconciliation_service import ReconciliationService
from portal.utils.config import Settings, get_settings
from portal.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    Every dependency is traceable from this function.
    """
    settings = settings or get_settings()

    # --- Store and typed repository ---
    store = DocumentStore(settings)
    repository = ResourceRepository(store)

    # --- Services (business logic, no direct store access) ---
    allocation_service = AllocationService(repository=repository, settings=settings)
    reconciliation_service = ReconciliationService(repository=repository, settings=settings)
    cleanup_service = CleanupService(repository=repository)
    migration_service = MigrationService(repository=repository)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(allocation_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.settings = settings
    app.state.store = store
    app.state.allocation_service = allocation_service
    app.state.reconciliation_service = reconciliation_service
    app.state.cleanup_service = cleanup_service
    app.state.migration_service = migration_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Order matters:
      1. Schema must exist before seeding.
      2. Legacy trainee records are backfilled before any pass reads them.
    """
    settings: Settings = app.state.settings
    store: DocumentStore = app.state.store
    migration_service: MigrationService = app.state.migration_service

    logger.info("Startup: initializing document store")
    store.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo rooms, tags and trainees (skipped if data exists)")
        store.seed_demo_data_if_empty()

    logger.info("Startup: backfilling legacy trainee allocation fields")
    migration_service.migrate_legacy_trainees()

    logger.info("Startup complete; system ready")


# Module-level app object for uvicorn
app = create_app()
