"""Cross-collection reference rules.

Trainees point at rooms by the (roomNumber, roomBlock) value pair and at tags
by tag number. Every comparison between collections goes through here so the
tolerant rules apply identically at each call site.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from portal.domain.models import Room, Tag, Trainee


PENDING = "pending"
LEGACY_TAG_PREFIX = "Trainee-"

_NATURAL_SPLIT = re.compile(r"(\d+)")


def clean_reference(value: Any) -> Optional[str]:
    """Return the stored reference as a string, or None when unassigned."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == PENDING:
        return None
    return text


def normalize_tag_number(tag_number: str) -> str:
    text = tag_number.strip()
    if text.startswith(LEGACY_TAG_PREFIX):
        return text[len(LEGACY_TAG_PREFIX):]
    return text


def tags_match(left: Optional[str], right: Optional[str]) -> bool:
    if left is None or right is None:
        return False
    return normalize_tag_number(left) == normalize_tag_number(right)


def trainee_holds_tag(trainee: Trainee, tag: Tag) -> bool:
    return tags_match(trainee.tag_number, tag.tag_no)


def room_key(room_number: str, block: str) -> tuple[str, str]:
    return (room_number.strip(), block.strip())


def trainee_in_room(trainee: Trainee, room: Room) -> bool:
    if not trainee.has_room:
        return False
    return room_key(trainee.room_number, trainee.room_block) == room_key(
        room.room_number,
        room.block,
    )


def trainee_in_any_room(trainee: Trainee, rooms: Iterable[Room]) -> bool:
    return any(trainee_in_room(trainee, room) for room in rooms)


def trainee_holds_any_tag(trainee: Trainee, tags: Iterable[Tag]) -> bool:
    return any(trainee_holds_tag(trainee, tag) for tag in tags)


def natural_sort_key(value: str) -> tuple:
    """Order "R2" before "R10"; digits compare numerically."""
    parts = _NATURAL_SPLIT.split(value.strip().lower())
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in parts
        if part
    )
