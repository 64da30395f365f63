"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from portal.services.allocation_service import AllocationService
from portal.services.cleanup_service import CleanupService
from portal.services.migration_service import MigrationService
from portal.services.reconciliation_service import ReconciliationService


def _service_from_state(request: Request, attribute: str, label: str):
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} service is not initialized",
        )
    return service


def get_reconciliation_service(request: Request) -> ReconciliationService:
    return _service_from_state(request, "reconciliation_service", "Reconciliation")


def get_allocation_service(request: Request) -> AllocationService:
    return _service_from_state(request, "allocation_service", "Allocation")


def get_cleanup_service(request: Request) -> CleanupService:
    return _service_from_state(request, "cleanup_service", "Cleanup")


def get_migration_service(request: Request) -> MigrationService:
    return _service_from_state(request, "migration_service", "Migration")
