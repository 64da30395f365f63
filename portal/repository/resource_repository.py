"""Typed access to the trainee, room and tag collections.

Decodes raw store records into domain objects (sentinel "pending" becomes
`None`) and encodes domain-level field changes back into store fields.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from portal.domain.matching import PENDING, clean_reference
from portal.domain.models import (
    AllocationStatus,
    Gender,
    ResourceSnapshot,
    Room,
    RoomStatus,
    Tag,
    TagStatus,
    Trainee,
)
from portal.repository.document_store import ROOMS, TAGS, TRAINEES, DocumentStore


_TRAINEE_FIELDS = {
    "tag_number": "tagNumber",
    "room_number": "roomNumber",
    "room_block": "roomBlock",
    "bed_space": "bedSpace",
    "allocation_status": "allocationStatus",
}
_PENDING_ENCODED = {"tag_number", "room_number", "room_block", "bed_space"}


def _parse_enum(enum_type, value: Any):
    if value is None:
        return None
    try:
        return enum_type(str(value).strip().lower())
    except ValueError:
        return None


def _parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def trainee_from_record(record: Mapping[str, Any]) -> Trainee:
    return Trainee(
        trainee_id=str(record["id"]),
        gender=_parse_enum(Gender, record.get("gender")),
        tag_number=clean_reference(record.get("tagNumber")),
        room_number=clean_reference(record.get("roomNumber")),
        room_block=clean_reference(record.get("roomBlock")),
        bed_space=clean_reference(record.get("bedSpace")),
        allocation_status=_parse_enum(AllocationStatus, record.get("allocationStatus")),
    )


def room_from_record(record: Mapping[str, Any]) -> Room:
    bed_space = record.get("bedSpace")
    return Room(
        room_id=str(record["id"]),
        room_number=str(record.get("roomNumber") or "").strip(),
        block=str(record.get("block") or "").strip(),
        bed_space=None if bed_space is None else str(bed_space),
        status=_parse_enum(RoomStatus, record.get("status")),
        current_occupancy=_parse_int(record.get("currentOccupancy")),
    )


def tag_from_record(record: Mapping[str, Any]) -> Tag:
    return Tag(
        tag_id=str(record["id"]),
        tag_no=str(record.get("tagNo") or "").strip(),
        status=_parse_enum(TagStatus, record.get("status")),
    )


def encode_trainee_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Translate domain field names/values into store fields."""
    encoded: dict[str, Any] = {}
    for name, value in changes.items():
        store_field = _TRAINEE_FIELDS.get(name)
        if store_field is None:
            raise KeyError(f"Unknown trainee field: {name}")
        if value is None and name in _PENDING_ENCODED:
            encoded[store_field] = PENDING
        elif isinstance(value, AllocationStatus):
            encoded[store_field] = value.value
        else:
            encoded[store_field] = value
    return encoded


class ResourceRepository:
    """Resource pool reader plus the field-update primitive for each collection."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def list_trainees(self) -> list[Trainee]:
        return [trainee_from_record(record) for record in self._store.list_all(TRAINEES)]

    def list_rooms(self) -> list[Room]:
        return [
            room_from_record(record)
            for record in self._store.list_all(ROOMS)
            if record.get("roomNumber") and record.get("block")
        ]

    def list_tags(self) -> list[Tag]:
        return [
            tag_from_record(record)
            for record in self._store.list_all(TAGS)
            if record.get("tagNo")
        ]

    def list_raw_trainees(self) -> list[dict[str, Any]]:
        """Undecoded trainee records, for migrations that inspect missing fields."""
        return self._store.list_all(TRAINEES)

    def load_snapshot(self) -> ResourceSnapshot:
        return ResourceSnapshot(
            trainees=self.list_trainees(),
            rooms=self.list_rooms(),
            tags=self.list_tags(),
        )

    def get_room(self, room_id: str) -> Room:
        return room_from_record(self._store.get_record(ROOMS, room_id))

    def get_tag(self, tag_id: str) -> Tag:
        return tag_from_record(self._store.get_record(TAGS, tag_id))

    def update_trainee(self, trainee_id: str, **changes: Any) -> None:
        self._store.patch(TRAINEES, trainee_id, encode_trainee_changes(changes))

    def patch_trainee_fields(self, trainee_id: str, fields: Mapping[str, Any]) -> None:
        """Write raw store fields; used where the change is expressed in store terms."""
        self._store.patch(TRAINEES, trainee_id, fields)

    def update_room_status(
        self,
        room_id: str,
        status: RoomStatus,
        current_occupancy: int,
    ) -> None:
        self._store.patch(
            ROOMS,
            room_id,
            {"status": status.value, "currentOccupancy": current_occupancy},
        )

    def update_tag_status(self, tag_id: str, status: TagStatus) -> None:
        self._store.patch(TAGS, tag_id, {"status": status.value})

    def create_trainee(self, fields: Mapping[str, Any]) -> str:
        return self._store.create_record(TRAINEES, fields)

    def delete_room(self, room_id: str) -> None:
        self._store.delete_record(ROOMS, room_id)

    def delete_tag(self, tag_id: str) -> None:
        self._store.delete_record(TAGS, tag_id)
