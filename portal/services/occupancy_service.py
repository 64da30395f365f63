"""Bed occupancy and room status derivation. Pure functions, no store access."""

from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from portal.domain.matching import natural_sort_key, trainee_in_room
from portal.domain.models import OccupancyResult, Room, RoomStatus, Trainee


_BED_SPACE_WORDS = {"single": 1, "double": 2}
_LEADING_COUNT = re.compile(r"\s*\+?(\d+)")


def normalize_bed_space(bed_space: Optional[str]) -> int:
    """Convert a bed-space label to a capacity; malformed values count as 1.

    Numeric labels are read up to the first non-digit, so "2.0" and
    "3 beds" give 2 and 3.
    """
    if bed_space is None:
        return 1
    text = str(bed_space).strip().lower()
    if text in _BED_SPACE_WORDS:
        return _BED_SPACE_WORDS[text]
    match = _LEADING_COUNT.match(text)
    if match is None:
        return 1
    capacity = int(match.group(1))
    return capacity if capacity > 0 else 1


def count_occupants(room: Room, trainees: Iterable[Trainee]) -> int:
    return sum(1 for trainee in trainees if trainee_in_room(trainee, room))


def status_for_occupancy(capacity: int, occupancy: int) -> RoomStatus:
    if capacity == 1:
        return RoomStatus.FULLY_OCCUPIED if occupancy >= 1 else RoomStatus.AVAILABLE
    if capacity == 2:
        if occupancy == 0:
            return RoomStatus.AVAILABLE
        if occupancy == 1:
            return RoomStatus.PARTIALLY_OCCUPIED
        return RoomStatus.FULLY_OCCUPIED
    if occupancy >= capacity:
        return RoomStatus.FULLY_OCCUPIED
    if occupancy > 0:
        return RoomStatus.PARTIALLY_OCCUPIED
    return RoomStatus.AVAILABLE


def compute_occupancy(room: Room, trainees: Iterable[Trainee]) -> OccupancyResult:
    capacity = normalize_bed_space(room.bed_space)
    occupancy = count_occupants(room, trainees)
    return OccupancyResult(
        correct_status=status_for_occupancy(capacity, occupancy),
        current_occupancy=occupancy,
        capacity=capacity,
    )


def room_needs_update(room: Room, result: OccupancyResult) -> bool:
    """Whether the stored derived fields disagree with `result`.

    Maintenance is an operator-set status; only the cached occupancy is
    compared for rooms under maintenance.
    """
    if room.current_occupancy != result.current_occupancy:
        return True
    if room.status is RoomStatus.MAINTENANCE:
        return False
    return room.status is not result.correct_status


def target_status(room: Room, result: OccupancyResult) -> RoomStatus:
    if room.status is RoomStatus.MAINTENANCE:
        return RoomStatus.MAINTENANCE
    return result.correct_status


def room_occupancy_overview(
    rooms: Iterable[Room],
    trainees: Iterable[Trainee],
) -> list[dict[str, Any]]:
    """One row per room for the operator room table, ordered by block then number."""
    trainee_list = list(trainees)
    rows: list[dict[str, Any]] = []
    for room in sorted(
        rooms,
        key=lambda item: (natural_sort_key(item.block), natural_sort_key(item.room_number)),
    ):
        result = compute_occupancy(room, trainee_list)
        rows.append(
            {
                "room_id": room.room_id,
                "room_number": room.room_number,
                "block": room.block,
                "capacity": result.capacity,
                "occupancy": result.current_occupancy,
                "stored_status": room.status.value if room.status else None,
                "computed_status": target_status(room, result).value,
            }
        )
    return rows
