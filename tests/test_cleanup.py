from __future__ import annotations

from dataclasses import replace

from portal.domain.models import Room, Tag
from portal.repository.document_store import ROOMS, TAGS, TRAINEES, DocumentStore, StoreError
from portal.repository.resource_repository import ResourceRepository
from portal.services.cleanup_service import CleanupService, deleted_descriptors
from portal.services.reconciliation_service import ReconciliationService
from portal.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    return replace(get_settings(), database_path=tmp_path / filename, seed_demo_data=False)


def _build_store(tmp_path, filename: str) -> tuple[DocumentStore, ResourceRepository]:
    store = DocumentStore(_build_test_settings(tmp_path, filename))
    store.initialize_database()
    return store, ResourceRepository(store)


def _allocated_trainee(store: DocumentStore, tag_no: str, room_number: str, block: str) -> str:
    return store.create_record(
        TRAINEES,
        {
            "gender": "male",
            "tagNumber": tag_no,
            "roomNumber": room_number,
            "roomBlock": block,
            "bedSpace": "double",
            "allocationStatus": "allocated",
        },
    )


def test_cleanup_resets_room_fields_for_deleted_room(tmp_path):
    store, repository = _build_store(tmp_path, "cleanup_room.db")
    affected = _allocated_trainee(store, "T1", "101", "A")
    untouched = _allocated_trainee(store, "T2", "101", "B")
    rooms, _ = deleted_descriptors(rooms=[{"room_number": "101", "block": "A"}])

    result = CleanupService(repository).cleanup_after_deletion(rooms, [])

    assert result.updated_trainee_count == 1
    record = store.get_record(TRAINEES, affected)
    assert (record["roomNumber"], record["roomBlock"], record["bedSpace"]) == ("pending",) * 3
    assert record["tagNumber"] == "T1"
    assert store.get_record(TRAINEES, untouched)["roomBlock"] == "B"


def test_cleanup_matches_legacy_prefixed_tags_both_ways(tmp_path):
    store, repository = _build_store(tmp_path, "cleanup_tags.db")
    prefixed_trainee = _allocated_trainee(store, "Trainee-T1", "101", "A")
    plain_trainee = _allocated_trainee(store, "T2", "102", "A")
    other = _allocated_trainee(store, "T3", "103", "A")
    deleted_tags = [
        Tag(tag_id="x", tag_no="T1", status=None),
        Tag(tag_id="y", tag_no="Trainee-T2", status=None),
    ]

    result = CleanupService(repository).cleanup_after_deletion([], deleted_tags)

    assert result.updated_trainee_count == 2
    for trainee_id in (prefixed_trainee, plain_trainee):
        record = store.get_record(TRAINEES, trainee_id)
        assert record["tagNumber"] == "pending"
        assert record["allocationStatus"] == "no_tags"
        assert record["roomNumber"] != "pending"
    assert store.get_record(TRAINEES, other)["tagNumber"] == "T3"


def test_delete_rooms_removes_record_and_cleans_trainees(tmp_path):
    store, repository = _build_store(tmp_path, "delete_rooms.db")
    room_id = store.create_record(ROOMS, {"roomNumber": "101", "block": "A", "bedSpace": "double"})
    trainee_id = _allocated_trainee(store, "T1", "101", "A")

    result = CleanupService(repository).delete_rooms([room_id, "missing-room"])

    assert result.deleted_count == 1
    assert result.updated_trainee_count == 1
    assert result.inconsistencies == 1
    assert store.list_all(ROOMS) == []
    assert store.get_record(TRAINEES, trainee_id)["roomNumber"] == "pending"


def test_deleted_room_is_reallocated_on_next_synchronize(tmp_path):
    settings = replace(
        _build_test_settings(tmp_path, "delete_then_sync.db"),
        male_blocks=("A", "B"),
        female_blocks=("C", "D"),
    )
    store = DocumentStore(settings)
    store.initialize_database()
    repository = ResourceRepository(store)
    deleted_room = store.create_record(ROOMS, {"roomNumber": "101", "block": "A", "bedSpace": "single"})
    store.create_record(ROOMS, {"roomNumber": "201", "block": "B", "bedSpace": "single"})
    store.create_record(TAGS, {"tagNo": "T1", "status": "assigned"})
    trainee_id = _allocated_trainee(store, "T1", "101", "A")

    CleanupService(repository).delete_rooms([deleted_room])
    report = ReconciliationService(repository=repository, settings=settings).synchronize()

    record = store.get_record(TRAINEES, trainee_id)
    assert (record["roomBlock"], record["roomNumber"]) == ("B", "201")
    assert record["allocationStatus"] == "allocated"
    assert report.no_rooms == 0


def test_delete_tags_resets_holders(tmp_path):
    store, repository = _build_store(tmp_path, "delete_tags.db")
    tag_id = store.create_record(TAGS, {"tagNo": "T1", "status": "assigned"})
    trainee_id = _allocated_trainee(store, "T1", "101", "A")

    result = CleanupService(repository).delete_tags([tag_id])

    assert (result.deleted_count, result.updated_trainee_count) == (1, 1)
    record = store.get_record(TRAINEES, trainee_id)
    assert record["tagNumber"] == "pending"
    assert record["allocationStatus"] == "no_tags"


def test_release_orphaned_references(tmp_path):
    store, repository = _build_store(tmp_path, "orphans.db")
    store.create_record(ROOMS, {"roomNumber": "101", "block": "A", "bedSpace": "single"})
    store.create_record(TAGS, {"tagNo": "T1", "status": "assigned"})
    valid = _allocated_trainee(store, "Trainee-T1", "101", "A")
    orphan = _allocated_trainee(store, "T9", "999", "Z")

    result = CleanupService(repository).release_orphaned_references()

    assert result.updated_trainee_count == 1
    record = store.get_record(TRAINEES, orphan)
    assert record["tagNumber"] == "pending"
    assert record["roomNumber"] == "pending"
    assert record["allocationStatus"] == "no_tags"
    assert store.get_record(TRAINEES, valid)["tagNumber"] == "Trainee-T1"


def test_cleanup_write_failure_does_not_abort(tmp_path, monkeypatch):
    store, repository = _build_store(tmp_path, "cleanup_failure.db")
    failing = _allocated_trainee(store, "T1", "101", "A")
    healthy = _allocated_trainee(store, "T1", "101", "A")
    original_patch = DocumentStore.patch

    def flaky_patch(self, collection, record_id, fields):
        if record_id == failing:
            raise StoreError("simulated timeout")
        return original_patch(self, collection, record_id, fields)

    monkeypatch.setattr(DocumentStore, "patch", flaky_patch)
    rooms = [Room(room_id="r", room_number="101", block="A", bed_space=None, status=None)]

    result = CleanupService(repository).cleanup_after_deletion(rooms, [])

    assert result.updated_trainee_count == 1
    assert result.inconsistencies == 1
    assert store.get_record(TRAINEES, healthy)["roomNumber"] == "pending"
