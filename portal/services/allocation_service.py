"""Tag and room selection, plus the single-trainee allocation path used at registration."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from portal.domain.constraints import AllocationConfig, validate_allocation_config
from portal.domain.matching import natural_sort_key, tags_match
from portal.domain.models import (
    AllocationStatus,
    Gender,
    ResourceSnapshot,
    Room,
    RoomAssignment,
    RoomStatus,
    Tag,
    TagStatus,
    Trainee,
)
from portal.repository.document_store import StoreError
from portal.repository.resource_repository import ResourceRepository, encode_trainee_changes
from portal.services.occupancy_service import count_occupants, normalize_bed_space
from portal.utils.config import Settings, get_settings
from portal.utils.logger import get_logger


logger = get_logger(__name__)


class AllocationValidationError(Exception):
    """Raised when allocation request inputs are invalid."""


def allocation_config_from_settings(settings: Settings) -> AllocationConfig:
    config = AllocationConfig(
        male_blocks=tuple(settings.male_blocks),
        female_blocks=tuple(settings.female_blocks),
    )
    validate_allocation_config(config)
    return config


def parse_gender(value: Any) -> Gender:
    if isinstance(value, Gender):
        return value
    try:
        return Gender(str(value).strip().lower())
    except ValueError as exc:
        raise AllocationValidationError(f"gender must be one of male/female, got {value!r}") from exc


# A tag with a missing or unreadable status is treated as free.
_ALLOCATABLE_TAG_STATUSES = (TagStatus.AVAILABLE, None)


def _tag_order(tag: Tag) -> tuple:
    return (natural_sort_key(tag.tag_no), tag.tag_id)


def select_available_tag(
    tags: Iterable[Tag],
    exclude: Iterable[str] = (),
) -> Optional[Tag]:
    """Pick the next available tag, or None when the pool is exhausted.

    Ties are broken by natural order of the tag number, then by record id,
    so the choice does not depend on store listing order.
    """
    excluded = list(exclude)
    candidates = [
        tag
        for tag in tags
        if tag.status in _ALLOCATABLE_TAG_STATUSES
        and not any(tags_match(tag.tag_no, taken) for taken in excluded)
    ]
    if not candidates:
        return None
    return min(candidates, key=_tag_order)


def select_room(
    gender: Gender,
    rooms: Iterable[Room],
    trainees: Iterable[Trainee],
    config: AllocationConfig,
) -> Optional[RoomAssignment]:
    """First room in the gender's blocks with a free bed, or None.

    Candidates are ordered by the block's position in the configured block
    set, then by natural order of the room number.
    """
    blocks = config.blocks_for(gender)
    block_rank = {block: index for index, block in enumerate(blocks)}
    candidates = sorted(
        (
            room
            for room in rooms
            if room.block in block_rank and room.status is not RoomStatus.MAINTENANCE
        ),
        key=lambda room: (block_rank[room.block], natural_sort_key(room.room_number), room.room_id),
    )
    trainee_list = list(trainees)
    for room in candidates:
        if count_occupants(room, trainee_list) < normalize_bed_space(room.bed_space):
            return RoomAssignment(
                room_number=room.room_number,
                room_block=room.block,
                bed_space=room.bed_space,
            )
    return None


class AllocationService:
    """Allocates resources to one trainee at a time against a fresh snapshot."""

    def __init__(
        self,
        repository: ResourceRepository,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository
        self._config = allocation_config_from_settings(self._settings)

    def _next_tag(self, snapshot: ResourceSnapshot) -> Optional[Tag]:
        held = [trainee.tag_number for trainee in snapshot.trainees if trainee.has_tag]
        tag = select_available_tag(snapshot.tags, exclude=held)
        if tag is None:
            logger.info("Tag allocation exhausted | tags=%s", len(snapshot.tags))
        return tag

    def allocate_tag_number(self) -> Optional[str]:
        """Return the next free tag number without reserving it.

        The tag only becomes assigned once a trainee record references it,
        either through `admit_trainee` or the next synchronization pass.
        Two registrations running at the same time can be offered the same
        number; nothing here serializes them.
        """
        tag = self._next_tag(self._repository.load_snapshot())
        return tag.tag_no if tag else None

    def allocate_room_with_bed_space(self, gender: Gender | str) -> Optional[RoomAssignment]:
        resolved_gender = parse_gender(gender)
        return self._select_room(resolved_gender, self._repository.load_snapshot())

    def _select_room(self, gender: Gender, snapshot: ResourceSnapshot) -> Optional[RoomAssignment]:
        assignment = select_room(gender, snapshot.rooms, snapshot.trainees, self._config)
        if assignment is None:
            logger.info("Room allocation exhausted | gender=%s", gender.value)
        return assignment

    def admit_trainee(
        self,
        gender: Gender | str,
        profile: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, Any]:
        """Create a trainee record with whatever tag and room are available now.

        The chosen tag is marked assigned only after the trainee record is
        written, so a failed insert leaves the tag pool untouched.
        """
        resolved_gender = parse_gender(gender)
        snapshot = self._repository.load_snapshot()
        tag = self._next_tag(snapshot)
        tag_number = tag.tag_no if tag else None
        assignment = None
        if tag is not None:
            assignment = self._select_room(resolved_gender, snapshot)

        if tag_number is None:
            status = AllocationStatus.NO_TAGS
        elif assignment is None:
            status = AllocationStatus.NO_ROOMS
        else:
            status = AllocationStatus.ALLOCATED

        fields: dict[str, Any] = dict(profile or {})
        fields.pop("id", None)
        fields["gender"] = resolved_gender.value
        fields.update(
            encode_trainee_changes(
                {
                    "tag_number": tag_number,
                    "room_number": assignment.room_number if assignment else None,
                    "room_block": assignment.room_block if assignment else None,
                    "bed_space": assignment.bed_space if assignment else None,
                    "allocation_status": status,
                }
            )
        )
        trainee_id = self._repository.create_trainee(fields)
        if tag is not None:
            try:
                self._repository.update_tag_status(tag.tag_id, TagStatus.ASSIGNED)
            except StoreError as exc:
                # The trainee already references the tag; the next pass marks it assigned.
                logger.warning(
                    "Tag status update failed after admission | trainee_id=%s | tag_no=%s | error=%s",
                    trainee_id,
                    tag.tag_no,
                    exc,
                )
        logger.info(
            "Trainee admitted | trainee_id=%s | tag_no=%s | room=%s | status=%s",
            trainee_id,
            tag_number,
            f"{assignment.room_block}-{assignment.room_number}" if assignment else None,
            status.value,
        )
        return {
            "trainee_id": trainee_id,
            "tag_number": tag_number,
            "room": assignment.to_dict() if assignment else None,
            "allocation_status": status.value,
        }
