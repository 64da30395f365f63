"""Domain models for trainee, room and tag allocation.

Unassigned tag/room fields are `None` here; the storage sentinel "pending"
only exists at the repository boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class AllocationStatus(str, Enum):
    PENDING = "pending"
    ALLOCATED = "allocated"
    NO_ROOMS = "no_rooms"
    NO_TAGS = "no_tags"


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    PARTIALLY_OCCUPIED = "partially_occupied"
    FULLY_OCCUPIED = "fully_occupied"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"


class TagStatus(str, Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"


@dataclass(frozen=True)
class Trainee:
    trainee_id: str
    gender: Optional[Gender]
    tag_number: Optional[str] = None
    room_number: Optional[str] = None
    room_block: Optional[str] = None
    bed_space: Optional[str] = None
    allocation_status: Optional[AllocationStatus] = None

    @property
    def has_tag(self) -> bool:
        return self.tag_number is not None

    @property
    def has_room(self) -> bool:
        return self.room_number is not None and self.room_block is not None


@dataclass(frozen=True)
class Room:
    room_id: str
    room_number: str
    block: str
    bed_space: Optional[str]
    status: Optional[RoomStatus]
    current_occupancy: Optional[int] = None


@dataclass(frozen=True)
class Tag:
    tag_id: str
    tag_no: str
    status: Optional[TagStatus]


@dataclass(frozen=True)
class RoomAssignment:
    room_number: str
    room_block: str
    bed_space: Optional[str]

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "room_number": self.room_number,
            "room_block": self.room_block,
            "bed_space": self.bed_space,
        }


@dataclass(frozen=True)
class OccupancyResult:
    correct_status: RoomStatus
    current_occupancy: int
    capacity: int


@dataclass
class ResourceSnapshot:
    """Point-in-time copy of the three collections, carried through a pass."""

    trainees: list[Trainee]
    rooms: list[Room]
    tags: list[Tag]


@dataclass(frozen=True)
class SynchronizationReport:
    allocated: int
    no_rooms: int
    no_tags: int
    rooms_updated: int
    tags_updated: int
    inconsistencies: int
    summary: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "allocated": self.allocated,
            "no_rooms": self.no_rooms,
            "no_tags": self.no_tags,
            "rooms_updated": self.rooms_updated,
            "tags_updated": self.tags_updated,
            "inconsistencies": self.inconsistencies,
            "summary": self.summary,
        }


@dataclass(frozen=True)
class RepairResult:
    updated: int
    inconsistencies: int = 0


@dataclass(frozen=True)
class CleanupResult:
    updated_trainee_count: int
    inconsistencies: int = 0
    deleted_count: int = 0


@dataclass(frozen=True)
class MigrationResult:
    migrated_count: int
    inconsistencies: int = 0
