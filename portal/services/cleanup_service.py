"""Trainee repair after rooms or tags are removed out from under them."""

from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

from portal.domain.matching import (
    tags_match,
    trainee_holds_any_tag,
    trainee_in_any_room,
    trainee_in_room,
)
from portal.domain.models import AllocationStatus, CleanupResult, Room, Tag, Trainee
from portal.repository.document_store import StoreError
from portal.repository.resource_repository import ResourceRepository
from portal.utils.logger import get_logger


logger = get_logger(__name__)

_ROOM_RESET = {"room_number": None, "room_block": None, "bed_space": None}
_TAG_RESET = {"tag_number": None, "allocation_status": AllocationStatus.NO_TAGS}


class CleanupService:
    def __init__(self, repository: ResourceRepository) -> None:
        self._repository = repository

    def cleanup_after_deletion(
        self,
        deleted_rooms: Iterable[Room],
        deleted_tags: Iterable[Tag],
    ) -> CleanupResult:
        """Reset trainees that point at any of the deleted rooms or tags."""
        rooms = list(deleted_rooms)
        tag_numbers = [tag.tag_no for tag in deleted_tags]
        updated = 0
        failures = 0

        for trainee in self._repository.list_trainees():
            changes: dict[str, Any] = {}
            if any(trainee_in_room(trainee, room) for room in rooms):
                changes.update(_ROOM_RESET)
            if any(tags_match(trainee.tag_number, tag_no) for tag_no in tag_numbers):
                changes.update(_TAG_RESET)
            if not changes:
                continue
            if self._apply(trainee, changes):
                updated += 1
            else:
                failures += 1

        logger.info(
            "Deletion cleanup completed | rooms=%s | tags=%s | updated_trainees=%s | failures=%s",
            len(rooms),
            len(tag_numbers),
            updated,
            failures,
        )
        return CleanupResult(updated_trainee_count=updated, inconsistencies=failures)

    def delete_rooms(self, room_ids: Sequence[str]) -> CleanupResult:
        deleted, failures = self._delete_each(
            room_ids,
            self._repository.get_room,
            self._repository.delete_room,
            "room",
        )
        cleanup = self.cleanup_after_deletion(deleted, [])
        return CleanupResult(
            updated_trainee_count=cleanup.updated_trainee_count,
            inconsistencies=failures + cleanup.inconsistencies,
            deleted_count=len(deleted),
        )

    def delete_tags(self, tag_ids: Sequence[str]) -> CleanupResult:
        deleted, failures = self._delete_each(
            tag_ids,
            self._repository.get_tag,
            self._repository.delete_tag,
            "tag",
        )
        cleanup = self.cleanup_after_deletion([], deleted)
        return CleanupResult(
            updated_trainee_count=cleanup.updated_trainee_count,
            inconsistencies=failures + cleanup.inconsistencies,
            deleted_count=len(deleted),
        )

    def release_orphaned_references(self) -> CleanupResult:
        """Reset trainee references to rooms or tags that no longer exist."""
        snapshot = self._repository.load_snapshot()
        updated = 0
        failures = 0
        for trainee in snapshot.trainees:
            changes: dict[str, Any] = {}
            if trainee.has_room and not trainee_in_any_room(trainee, snapshot.rooms):
                changes.update(_ROOM_RESET)
            if trainee.has_tag and not trainee_holds_any_tag(trainee, snapshot.tags):
                changes.update(_TAG_RESET)
            if not changes:
                continue
            if self._apply(trainee, changes):
                updated += 1
            else:
                failures += 1
        logger.info(
            "Orphan cleanup completed | updated_trainees=%s | failures=%s",
            updated,
            failures,
        )
        return CleanupResult(updated_trainee_count=updated, inconsistencies=failures)

    def _apply(self, trainee: Trainee, changes: dict[str, Any]) -> bool:
        try:
            self._repository.update_trainee(trainee.trainee_id, **changes)
        except StoreError as exc:
            logger.warning(
                "Trainee cleanup failed | trainee_id=%s | fields=%s | error=%s",
                trainee.trainee_id,
                sorted(changes),
                exc,
            )
            return False
        logger.debug(
            "Trainee cleaned | trainee_id=%s | fields=%s",
            trainee.trainee_id,
            sorted(changes),
        )
        return True

    def _delete_each(self, record_ids, load, delete, kind: str) -> tuple[list, int]:
        deleted: list = []
        failures = 0
        for record_id in dict.fromkeys(record_ids):
            try:
                record = load(record_id)
                delete(record_id)
            except StoreError as exc:
                failures += 1
                logger.warning("Delete failed | %s_id=%s | error=%s", kind, record_id, exc)
                continue
            deleted.append(record)
        return deleted, failures


def deleted_descriptors(
    rooms: Optional[Iterable[dict[str, Any]]] = None,
    tags: Optional[Iterable[dict[str, Any]]] = None,
) -> tuple[list[Room], list[Tag]]:
    """Build minimal Room/Tag descriptors from caller-supplied identifiers."""
    room_items = [
        Room(
            room_id=str(item.get("room_id") or ""),
            room_number=str(item["room_number"]).strip(),
            block=str(item["block"]).strip(),
            bed_space=None,
            status=None,
        )
        for item in rooms or []
    ]
    tag_items = [
        Tag(tag_id=str(item.get("tag_id") or ""), tag_no=str(item["tag_no"]).strip(), status=None)
        for item in tags or []
    ]
    return room_items, tag_items
