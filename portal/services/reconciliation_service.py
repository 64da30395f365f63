"""Allocation reconciliation across the trainee, room and tag collections.

A pass reads one snapshot, computes the target state with the pure helpers in
`occupancy_service`/`allocation_service`, and writes only the deltas. Writes
are applied record by record; a failed write is logged and counted, and the
in-memory snapshot keeps the stored value so later phases stay truthful.
Re-running a pass heals whatever a failed or interrupted pass left behind.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional

from portal.domain.matching import trainee_holds_tag, trainee_in_room
from portal.domain.models import (
    AllocationStatus,
    RepairResult,
    ResourceSnapshot,
    SynchronizationReport,
    TagStatus,
)
from portal.repository.document_store import ROOMS, TAGS, TRAINEES, StoreError
from portal.repository.resource_repository import ResourceRepository
from portal.services.allocation_service import (
    allocation_config_from_settings,
    select_available_tag,
    select_room,
)
from portal.services.occupancy_service import (
    compute_occupancy,
    room_needs_update,
    room_occupancy_overview,
    target_status,
)
from portal.utils.config import Settings, get_settings
from portal.utils.logger import get_logger


logger = get_logger(__name__)

_ROOM_HOLDING_STATUSES = (AllocationStatus.ALLOCATED, AllocationStatus.NO_ROOMS)


@dataclass
class PassTally:
    allocated: int = 0
    no_rooms: int = 0
    no_tags: int = 0
    rooms_updated: int = 0
    tags_updated: int = 0
    inconsistencies: int = 0


class ReconciliationService:
    """Business logic orchestration for the "Synchronize Allocations" pass."""

    def __init__(
        self,
        repository: ResourceRepository,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository
        self._config = allocation_config_from_settings(self._settings)

    def synchronize(self) -> SynchronizationReport:
        snapshot = self._repository.load_snapshot()
        tally = PassTally()
        logger.info(
            "Synchronization started | trainees=%s | rooms=%s | tags=%s",
            len(snapshot.trainees),
            len(snapshot.rooms),
            len(snapshot.tags),
        )

        self._repair_room_statuses(snapshot, tally)
        self._repair_tag_statuses(snapshot, tally)
        self._allocate_tags(snapshot, tally)
        touched_room_ids = self._allocate_rooms(snapshot, tally)
        if touched_room_ids:
            self._repair_room_statuses(snapshot, tally, room_ids=touched_room_ids)

        try:
            summary = self.allocation_summary()
        except StoreError as exc:
            tally.inconsistencies += 1
            logger.warning("Summary re-read failed | error=%s", exc)
            summary = {}

        report = SynchronizationReport(
            allocated=tally.allocated,
            no_rooms=tally.no_rooms,
            no_tags=tally.no_tags,
            rooms_updated=tally.rooms_updated,
            tags_updated=tally.tags_updated,
            inconsistencies=tally.inconsistencies,
            summary=summary,
        )
        logger.info(
            (
                "Synchronization completed | allocated=%s | no_rooms=%s | no_tags=%s | "
                "rooms_updated=%s | tags_updated=%s | inconsistencies=%s"
            ),
            report.allocated,
            report.no_rooms,
            report.no_tags,
            report.rooms_updated,
            report.tags_updated,
            report.inconsistencies,
        )
        return report

    def recalculate_room_statuses(self) -> RepairResult:
        snapshot = self._repository.load_snapshot()
        tally = PassTally()
        self._repair_room_statuses(snapshot, tally)
        return RepairResult(updated=tally.rooms_updated, inconsistencies=tally.inconsistencies)

    def refresh_tag_statuses(self) -> RepairResult:
        """Make every tag's status match whether any trainee references it."""
        snapshot = self._repository.load_snapshot()
        tally = PassTally()
        for index, tag in enumerate(snapshot.tags):
            referenced = any(trainee_holds_tag(trainee, tag) for trainee in snapshot.trainees)
            expected = TagStatus.ASSIGNED if referenced else TagStatus.AVAILABLE
            if tag.status is expected:
                continue
            if self._write(
                tally,
                TAGS,
                tag.tag_id,
                {"status": expected.value},
                lambda: self._repository.update_tag_status(tag.tag_id, expected),
            ):
                snapshot.tags[index] = replace(tag, status=expected)
                tally.tags_updated += 1
        logger.info(
            "Tag refresh completed | tags_updated=%s | inconsistencies=%s",
            tally.tags_updated,
            tally.inconsistencies,
        )
        return RepairResult(updated=tally.tags_updated, inconsistencies=tally.inconsistencies)

    def room_occupancy(self) -> list[dict[str, Any]]:
        snapshot = self._repository.load_snapshot()
        return room_occupancy_overview(snapshot.rooms, snapshot.trainees)

    def allocation_summary(self) -> dict[str, Any]:
        snapshot = self._repository.load_snapshot()
        trainee_counts = Counter(
            trainee.allocation_status.value if trainee.allocation_status else "unknown"
            for trainee in snapshot.trainees
        )
        room_counts = Counter(
            room.status.value if room.status else "unknown" for room in snapshot.rooms
        )
        tag_counts = Counter(tag.status.value if tag.status else "unknown" for tag in snapshot.tags)
        return {
            "trainees": {
                "total": len(snapshot.trainees),
                **{status.value: trainee_counts.get(status.value, 0) for status in AllocationStatus},
                "unknown": trainee_counts.get("unknown", 0),
            },
            "rooms": {"total": len(snapshot.rooms), **dict(sorted(room_counts.items()))},
            "tags": {
                "total": len(snapshot.tags),
                **{status.value: tag_counts.get(status.value, 0) for status in TagStatus},
                "unknown": tag_counts.get("unknown", 0),
            },
        }

    def _write(
        self,
        tally: PassTally,
        collection: str,
        record_id: str,
        fields: Mapping[str, Any],
        operation: Callable[[], None],
    ) -> bool:
        try:
            operation()
        except StoreError as exc:
            tally.inconsistencies += 1
            logger.warning(
                "Write failed | collection=%s | record_id=%s | fields=%s | error=%s",
                collection,
                record_id,
                dict(fields),
                exc,
            )
            return False
        return True

    def _update_trainee(
        self,
        tally: PassTally,
        snapshot: ResourceSnapshot,
        index: int,
        **changes: Any,
    ) -> bool:
        trainee = snapshot.trainees[index]
        if not self._write(
            tally,
            TRAINEES,
            trainee.trainee_id,
            changes,
            lambda: self._repository.update_trainee(trainee.trainee_id, **changes),
        ):
            return False
        snapshot.trainees[index] = replace(trainee, **changes)
        return True

    def _repair_room_statuses(
        self,
        snapshot: ResourceSnapshot,
        tally: PassTally,
        room_ids: Optional[set[str]] = None,
    ) -> None:
        for index, room in enumerate(snapshot.rooms):
            if room_ids is not None and room.room_id not in room_ids:
                continue
            result = compute_occupancy(room, snapshot.trainees)
            if not room_needs_update(room, result):
                continue
            status = target_status(room, result)
            if self._write(
                tally,
                ROOMS,
                room.room_id,
                {"status": status.value, "currentOccupancy": result.current_occupancy},
                lambda: self._repository.update_room_status(
                    room.room_id,
                    status,
                    result.current_occupancy,
                ),
            ):
                logger.debug(
                    "Room status repaired | room=%s-%s | status=%s->%s | occupancy=%s/%s",
                    room.block,
                    room.room_number,
                    room.status.value if room.status else None,
                    status.value,
                    result.current_occupancy,
                    result.capacity,
                )
                snapshot.rooms[index] = replace(
                    room,
                    status=status,
                    current_occupancy=result.current_occupancy,
                )
                tally.rooms_updated += 1

    def _repair_tag_statuses(self, snapshot: ResourceSnapshot, tally: PassTally) -> None:
        for index, tag in enumerate(snapshot.tags):
            if tag.status is TagStatus.ASSIGNED:
                continue
            if not any(trainee_holds_tag(trainee, tag) for trainee in snapshot.trainees):
                continue
            if self._write(
                tally,
                TAGS,
                tag.tag_id,
                {"status": TagStatus.ASSIGNED.value},
                lambda: self._repository.update_tag_status(tag.tag_id, TagStatus.ASSIGNED),
            ):
                logger.info("Tag drift repaired | tag_no=%s | status=assigned", tag.tag_no)
                snapshot.tags[index] = replace(tag, status=TagStatus.ASSIGNED)
                tally.tags_updated += 1

    def _allocate_tags(self, snapshot: ResourceSnapshot, tally: PassTally) -> None:
        held = [trainee.tag_number for trainee in snapshot.trainees if trainee.has_tag]
        tag_index = {tag.tag_id: index for index, tag in enumerate(snapshot.tags)}

        for index, trainee in enumerate(snapshot.trainees):
            if trainee.has_tag:
                if trainee.allocation_status not in _ROOM_HOLDING_STATUSES:
                    self._update_trainee(
                        tally,
                        snapshot,
                        index,
                        allocation_status=AllocationStatus.ALLOCATED,
                    )
                continue

            tag = select_available_tag(snapshot.tags, exclude=held)
            if tag is None:
                tally.no_tags += 1
                if trainee.allocation_status is not AllocationStatus.NO_TAGS:
                    self._update_trainee(
                        tally,
                        snapshot,
                        index,
                        allocation_status=AllocationStatus.NO_TAGS,
                    )
                continue

            if not self._update_trainee(
                tally,
                snapshot,
                index,
                tag_number=tag.tag_no,
                allocation_status=AllocationStatus.ALLOCATED,
            ):
                continue
            held.append(tag.tag_no)
            tally.allocated += 1
            if self._write(
                tally,
                TAGS,
                tag.tag_id,
                {"status": TagStatus.ASSIGNED.value},
                lambda: self._repository.update_tag_status(tag.tag_id, TagStatus.ASSIGNED),
            ):
                snapshot.tags[tag_index[tag.tag_id]] = replace(tag, status=TagStatus.ASSIGNED)

    def _allocate_rooms(self, snapshot: ResourceSnapshot, tally: PassTally) -> set[str]:
        touched: set[str] = set()
        for index, trainee in enumerate(snapshot.trainees):
            if not trainee.has_tag or trainee.allocation_status not in _ROOM_HOLDING_STATUSES:
                continue
            if trainee.has_room:
                if trainee.allocation_status is not AllocationStatus.ALLOCATED:
                    self._update_trainee(
                        tally,
                        snapshot,
                        index,
                        allocation_status=AllocationStatus.ALLOCATED,
                    )
                continue

            assignment = None
            if trainee.gender is None:
                logger.warning(
                    "Trainee has no usable gender; room allocation skipped | trainee_id=%s",
                    trainee.trainee_id,
                )
            else:
                assignment = select_room(
                    trainee.gender,
                    snapshot.rooms,
                    snapshot.trainees,
                    self._config,
                )

            if assignment is None:
                tally.no_rooms += 1
                if trainee.allocation_status is not AllocationStatus.NO_ROOMS:
                    self._update_trainee(
                        tally,
                        snapshot,
                        index,
                        allocation_status=AllocationStatus.NO_ROOMS,
                    )
                continue

            if self._update_trainee(
                tally,
                snapshot,
                index,
                room_number=assignment.room_number,
                room_block=assignment.room_block,
                bed_space=assignment.bed_space,
                allocation_status=AllocationStatus.ALLOCATED,
            ):
                placed = snapshot.trainees[index]
                touched.update(
                    room.room_id for room in snapshot.rooms if trainee_in_room(placed, room)
                )
        return touched
