"""HTTP controller layer for allocation reconciliation and cleanup."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from portal.controllers.dependencies import (
    get_allocation_service,
    get_cleanup_service,
    get_migration_service,
    get_reconciliation_service,
)
from portal.domain.models import Gender
from portal.repository.document_store import StoreError
from portal.services.allocation_service import AllocationService, AllocationValidationError
from portal.services.cleanup_service import CleanupService, deleted_descriptors
from portal.services.migration_service import MigrationService
from portal.services.reconciliation_service import ReconciliationService
from portal.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["allocation"])


class SynchronizationReportResponse(BaseModel):
    allocated: int = Field(ge=0)
    no_rooms: int = Field(ge=0)
    no_tags: int = Field(ge=0)
    rooms_updated: int = Field(ge=0)
    tags_updated: int = Field(ge=0)
    inconsistencies: int = Field(ge=0)
    summary: dict[str, Any]


class RepairResponse(BaseModel):
    updated: int = Field(ge=0)
    inconsistencies: int = Field(ge=0)


class RoomOccupancyRow(BaseModel):
    room_id: str
    room_number: str
    block: str
    capacity: int = Field(gt=0)
    occupancy: int = Field(ge=0)
    stored_status: Optional[str]
    computed_status: str


class DeletedRoomDescriptor(BaseModel):
    room_number: str = Field(min_length=1)
    block: str = Field(min_length=1)


class DeletedTagDescriptor(BaseModel):
    tag_no: str = Field(min_length=1)


class CleanupRequest(BaseModel):
    deleted_rooms: list[DeletedRoomDescriptor] = Field(default_factory=list)
    deleted_tags: list[DeletedTagDescriptor] = Field(default_factory=list)


class CleanupResponse(BaseModel):
    updated_trainee_count: int = Field(ge=0)
    inconsistencies: int = Field(ge=0)


class DeleteResourcesRequest(BaseModel):
    ids: list[str] = Field(min_length=1)

    @field_validator("ids")
    @classmethod
    def validate_ids(cls, value: list[str]) -> list[str]:
        for item in value:
            if not item.strip():
                raise ValueError("ids must be non-empty strings")
        return value


class DeleteResourcesResponse(BaseModel):
    deleted_count: int = Field(ge=0)
    updated_trainee_count: int = Field(ge=0)
    inconsistencies: int = Field(ge=0)


class MigrationResponse(BaseModel):
    migrated_count: int = Field(ge=0)
    inconsistencies: int = Field(ge=0)


class TagAllocationResponse(BaseModel):
    tag_no: Optional[str]


class RoomAllocationRequest(BaseModel):
    gender: Gender


class RoomAllocationResponse(BaseModel):
    room_number: str
    room_block: str
    bed_space: Optional[str]


class AdmitTraineeRequest(BaseModel):
    gender: Gender
    profile: dict[str, Any] = Field(default_factory=dict)


class AdmitTraineeResponse(BaseModel):
    trainee_id: str
    tag_number: Optional[str]
    room: Optional[RoomAllocationResponse]
    allocation_status: str


def _store_unavailable(exc: StoreError) -> HTTPException:
    logger.error("Document store failure | error=%s", exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Document store is unavailable",
    )


@router.post(
    "/synchronize",
    response_model=SynchronizationReportResponse,
    status_code=status.HTTP_200_OK,
)
def synchronize(
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> SynchronizationReportResponse:
    """Run one full reconciliation pass and return its report."""
    try:
        report = service.synchronize()
        return SynchronizationReportResponse(**report.to_dict())
    except StoreError as exc:
        raise _store_unavailable(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected synchronization failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to synchronize allocations",
        ) from exc


@router.post("/rooms/recalculate", response_model=RepairResponse)
def recalculate_room_statuses(
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> RepairResponse:
    try:
        result = service.recalculate_room_statuses()
    except StoreError as exc:
        raise _store_unavailable(exc) from exc
    return RepairResponse(updated=result.updated, inconsistencies=result.inconsistencies)


@router.post("/tags/refresh", response_model=RepairResponse)
def refresh_tag_statuses(
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> RepairResponse:
    try:
        result = service.refresh_tag_statuses()
    except StoreError as exc:
        raise _store_unavailable(exc) from exc
    return RepairResponse(updated=result.updated, inconsistencies=result.inconsistencies)


@router.get("/allocation/summary")
def allocation_summary(
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> dict[str, Any]:
    try:
        return service.allocation_summary()
    except StoreError as exc:
        raise _store_unavailable(exc) from exc


@router.get("/rooms/occupancy", response_model=list[RoomOccupancyRow])
def room_occupancy(
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> list[RoomOccupancyRow]:
    try:
        rows = service.room_occupancy()
    except StoreError as exc:
        raise _store_unavailable(exc) from exc
    return [RoomOccupancyRow(**row) for row in rows]


@router.post("/cleanup", response_model=CleanupResponse)
def cleanup_after_deletion(
    payload: CleanupRequest,
    service: CleanupService = Depends(get_cleanup_service),
) -> CleanupResponse:
    """Reset trainees that still reference rooms or tags deleted elsewhere."""
    rooms, tags = deleted_descriptors(
        rooms=[item.model_dump() for item in payload.deleted_rooms],
        tags=[item.model_dump() for item in payload.deleted_tags],
    )
    try:
        result = service.cleanup_after_deletion(rooms, tags)
    except StoreError as exc:
        raise _store_unavailable(exc) from exc
    return CleanupResponse(
        updated_trainee_count=result.updated_trainee_count,
        inconsistencies=result.inconsistencies,
    )


@router.post("/cleanup/orphans", response_model=CleanupResponse)
def release_orphaned_references(
    service: CleanupService = Depends(get_cleanup_service),
) -> CleanupResponse:
    try:
        result = service.release_orphaned_references()
    except StoreError as exc:
        raise _store_unavailable(exc) from exc
    return CleanupResponse(
        updated_trainee_count=result.updated_trainee_count,
        inconsistencies=result.inconsistencies,
    )


@router.post("/rooms/delete", response_model=DeleteResourcesResponse)
def delete_rooms(
    payload: DeleteResourcesRequest,
    service: CleanupService = Depends(get_cleanup_service),
) -> DeleteResourcesResponse:
    try:
        result = service.delete_rooms(payload.ids)
    except StoreError as exc:
        raise _store_unavailable(exc) from exc
    return DeleteResourcesResponse(
        deleted_count=result.deleted_count,
        updated_trainee_count=result.updated_trainee_count,
        inconsistencies=result.inconsistencies,
    )


@router.post("/tags/delete", response_model=DeleteResourcesResponse)
def delete_tags(
    payload: DeleteResourcesRequest,
    service: CleanupService = Depends(get_cleanup_service),
) -> DeleteResourcesResponse:
    try:
        result = service.delete_tags(payload.ids)
    except StoreError as exc:
        raise _store_unavailable(exc) from exc
    return DeleteResourcesResponse(
        deleted_count=result.deleted_count,
        updated_trainee_count=result.updated_trainee_count,
        inconsistencies=result.inconsistencies,
    )


@router.post("/migrate", response_model=MigrationResponse)
def migrate_legacy_trainees(
    service: MigrationService = Depends(get_migration_service),
) -> MigrationResponse:
    try:
        result = service.migrate_legacy_trainees()
    except StoreError as exc:
        raise _store_unavailable(exc) from exc
    return MigrationResponse(
        migrated_count=result.migrated_count,
        inconsistencies=result.inconsistencies,
    )


@router.post("/allocate/tag", response_model=TagAllocationResponse)
def allocate_tag_number(
    service: AllocationService = Depends(get_allocation_service),
) -> TagAllocationResponse:
    try:
        return TagAllocationResponse(tag_no=service.allocate_tag_number())
    except StoreError as exc:
        raise _store_unavailable(exc) from exc


@router.post("/allocate/room", response_model=Optional[RoomAllocationResponse])
def allocate_room_with_bed_space(
    payload: RoomAllocationRequest,
    service: AllocationService = Depends(get_allocation_service),
) -> Optional[RoomAllocationResponse]:
    """Return a free room+bed for the gender without reserving it; null when full."""
    try:
        assignment = service.allocate_room_with_bed_space(payload.gender)
    except AllocationValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreError as exc:
        raise _store_unavailable(exc) from exc
    if assignment is None:
        return None
    return RoomAllocationResponse(**assignment.to_dict())


@router.post(
    "/trainees/admit",
    response_model=AdmitTraineeResponse,
    status_code=status.HTTP_201_CREATED,
)
def admit_trainee(
    payload: AdmitTraineeRequest,
    service: AllocationService = Depends(get_allocation_service),
) -> AdmitTraineeResponse:
    try:
        result = service.admit_trainee(payload.gender, payload.profile)
    except AllocationValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreError as exc:
        raise _store_unavailable(exc) from exc
    return AdmitTraineeResponse(**result)
