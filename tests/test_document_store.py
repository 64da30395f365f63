from __future__ import annotations

from dataclasses import replace

import pytest

from portal.repository.document_store import (
    ROOMS,
    TAGS,
    TRAINEES,
    DocumentStore,
    RecordNotFoundError,
    StoreError,
)
from portal.repository.resource_repository import ResourceRepository, encode_trainee_changes
from portal.domain.models import AllocationStatus
from portal.utils.config import get_settings


def _build_store(tmp_path, filename: str, **overrides) -> DocumentStore:
    settings = replace(
        get_settings(),
        database_path=tmp_path / filename,
        seed_demo_data=False,
        **overrides,
    )
    store = DocumentStore(settings)
    store.initialize_database()
    return store


def test_list_all_preserves_insertion_order_and_merges_ids(tmp_path):
    store = _build_store(tmp_path, "order.db")
    ids = [store.create_record(TAGS, {"tagNo": f"T{index}", "id": "caller-id"}) for index in (3, 1, 2)]

    records = store.list_all(TAGS)

    assert [record["tagNo"] for record in records] == ["T3", "T1", "T2"]
    assert [record["id"] for record in records] == ids
    assert len(set(ids)) == 3
    assert store.list_all(ROOMS) == []


def test_patch_merges_fields_and_rejects_missing_records(tmp_path):
    store = _build_store(tmp_path, "patch.db")
    record_id = store.create_record(ROOMS, {"roomNumber": "101", "block": "A", "status": "available"})

    store.patch(ROOMS, record_id, {"status": "fully_occupied", "currentOccupancy": 1})

    record = store.get_record(ROOMS, record_id)
    assert record["status"] == "fully_occupied"
    assert record["currentOccupancy"] == 1
    assert record["roomNumber"] == "101"
    with pytest.raises(RecordNotFoundError):
        store.patch(ROOMS, "missing", {"status": "available"})
    with pytest.raises(StoreError):
        store.get_record(TAGS, record_id)


def test_delete_record_removes_only_the_target(tmp_path):
    store = _build_store(tmp_path, "delete.db")
    keep = store.create_record(TAGS, {"tagNo": "T1"})
    drop = store.create_record(TAGS, {"tagNo": "T2"})

    store.delete_record(TAGS, drop)

    assert [record["id"] for record in store.list_all(TAGS)] == [keep]
    with pytest.raises(RecordNotFoundError):
        store.delete_record(TAGS, drop)


def test_seed_demo_data_runs_once(tmp_path):
    store = _build_store(
        tmp_path,
        "seed.db",
        demo_rooms_per_block=2,
        demo_tag_count=5,
        demo_trainee_count=3,
    )

    created = store.seed_demo_data_if_empty()

    assert created == 4 * 2 + 5 + 3
    assert store.count(TRAINEES) == 3
    assert {record["allocationStatus"] for record in store.list_all(TRAINEES)} == {"pending"}
    assert store.seed_demo_data_if_empty() == 0
    assert store.count(TAGS) == 5


def test_repository_decodes_pending_sentinel_and_skips_incomplete_rooms(tmp_path):
    store = _build_store(tmp_path, "decode.db")
    store.create_record(
        TRAINEES,
        {
            "gender": "Female",
            "tagNumber": "pending",
            "roomNumber": " 101 ",
            "roomBlock": "C",
            "allocationStatus": "no_tags",
        },
    )
    store.create_record(ROOMS, {"roomNumber": "101", "block": "C", "bedSpace": "single"})
    store.create_record(ROOMS, {"roomNumber": "102"})
    repository = ResourceRepository(store)

    (trainee,) = repository.list_trainees()

    assert trainee.tag_number is None
    assert trainee.room_number == "101"
    assert trainee.has_room
    assert trainee.allocation_status is AllocationStatus.NO_TAGS
    assert [room.room_number for room in repository.list_rooms()] == ["101"]


def test_encode_trainee_changes_writes_pending_for_cleared_fields() -> None:
    encoded = encode_trainee_changes(
        {"tag_number": None, "room_block": "A", "allocation_status": AllocationStatus.NO_TAGS}
    )
    assert encoded == {"tagNumber": "pending", "roomBlock": "A", "allocationStatus": "no_tags"}
    with pytest.raises(KeyError):
        encode_trainee_changes({"firstName": "Ada"})
