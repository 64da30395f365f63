"""Backfill for trainee records created before allocation tracking existed."""

from __future__ import annotations

from typing import Any, Mapping

from portal.domain.models import AllocationStatus, MigrationResult
from portal.repository.document_store import StoreError
from portal.repository.resource_repository import ResourceRepository, trainee_from_record
from portal.utils.logger import get_logger


logger = get_logger(__name__)


def derive_allocation_status(has_tag: bool, has_room: bool) -> AllocationStatus:
    if has_tag and has_room:
        return AllocationStatus.ALLOCATED
    if has_room:
        return AllocationStatus.NO_TAGS
    if has_tag:
        return AllocationStatus.NO_ROOMS
    return AllocationStatus.PENDING


def legacy_backfill(record: Mapping[str, Any]) -> dict[str, Any]:
    """Store fields a legacy record is missing; empty when already migrated."""
    fields: dict[str, Any] = {}
    if record.get("allocationStatus") in (None, ""):
        trainee = trainee_from_record(record)
        fields["allocationStatus"] = derive_allocation_status(
            trainee.has_tag,
            trainee.has_room,
        ).value
    if record.get("bedSpace") in (None, ""):
        fields["bedSpace"] = "pending"
    return fields


class MigrationService:
    def __init__(self, repository: ResourceRepository) -> None:
        self._repository = repository

    def migrate_legacy_trainees(self) -> MigrationResult:
        migrated = 0
        failures = 0
        for record in self._repository.list_raw_trainees():
            fields = legacy_backfill(record)
            if not fields:
                continue
            try:
                self._repository.patch_trainee_fields(str(record["id"]), fields)
            except StoreError as exc:
                failures += 1
                logger.warning(
                    "Legacy migration failed | trainee_id=%s | fields=%s | error=%s",
                    record["id"],
                    fields,
                    exc,
                )
                continue
            migrated += 1
        logger.info(
            "Legacy migration completed | migrated=%s | failures=%s",
            migrated,
            failures,
        )
        return MigrationResult(migrated_count=migrated, inconsistencies=failures)
