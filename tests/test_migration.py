from __future__ import annotations

from dataclasses import replace

import pytest

from portal.domain.models import AllocationStatus
from portal.repository.document_store import TRAINEES, DocumentStore
from portal.repository.resource_repository import ResourceRepository
from portal.services.migration_service import MigrationService, derive_allocation_status
from portal.utils.config import get_settings


def _build_service(tmp_path, filename: str) -> tuple[MigrationService, DocumentStore]:
    settings = replace(get_settings(), database_path=tmp_path / filename, seed_demo_data=False)
    store = DocumentStore(settings)
    store.initialize_database()
    return MigrationService(ResourceRepository(store)), store


@pytest.mark.parametrize(
    ("has_tag", "has_room", "expected"),
    [
        (True, True, AllocationStatus.ALLOCATED),
        (False, True, AllocationStatus.NO_TAGS),
        (True, False, AllocationStatus.NO_ROOMS),
        (False, False, AllocationStatus.PENDING),
    ],
)
def test_derive_allocation_status(has_tag, has_room, expected) -> None:
    assert derive_allocation_status(has_tag, has_room) is expected


def test_migration_backfills_legacy_records_and_is_idempotent(tmp_path):
    service, store = _build_service(tmp_path, "migration.db")
    full = store.create_record(TRAINEES, {"gender": "male", "tagNumber": "T1", "roomNumber": "101", "roomBlock": "A"})
    room_only = store.create_record(TRAINEES, {"gender": "male", "roomNumber": "102", "roomBlock": "A"})
    tag_only = store.create_record(TRAINEES, {"gender": "female", "tagNumber": "T2", "roomNumber": "pending"})
    bare = store.create_record(TRAINEES, {"gender": "female"})
    current = store.create_record(
        TRAINEES,
        {"gender": "male", "tagNumber": "pending", "bedSpace": "pending", "allocationStatus": "no_tags"},
    )

    first = service.migrate_legacy_trainees()

    assert first.migrated_count == 4
    expected = {
        full: "allocated",
        room_only: "no_tags",
        tag_only: "no_rooms",
        bare: "pending",
        current: "no_tags",
    }
    for trainee_id, status in expected.items():
        record = store.get_record(TRAINEES, trainee_id)
        assert record["allocationStatus"] == status
        assert record["bedSpace"] == "pending"

    second = service.migrate_legacy_trainees()
    assert second.migrated_count == 0
    assert second.inconsistencies == 0
