"""Domain-level validation rules for room allocation."""

from __future__ import annotations

from dataclasses import dataclass

from portal.domain.models import Gender


@dataclass(frozen=True)
class AllocationConfig:
    male_blocks: tuple[str, ...]
    female_blocks: tuple[str, ...]

    def blocks_for(self, gender: Gender) -> tuple[str, ...]:
        if gender is Gender.MALE:
            return self.male_blocks
        return self.female_blocks


def validate_allocation_config(config: AllocationConfig) -> None:
    if not config.male_blocks:
        raise ValueError("male_blocks must contain at least one block")
    if not config.female_blocks:
        raise ValueError("female_blocks must contain at least one block")
    for block in (*config.male_blocks, *config.female_blocks):
        if not block.strip():
            raise ValueError("block names must be non-empty")
    if len(set(config.male_blocks)) != len(config.male_blocks):
        raise ValueError("male_blocks must not repeat a block")
    if len(set(config.female_blocks)) != len(config.female_blocks):
        raise ValueError("female_blocks must not repeat a block")
    if set(config.male_blocks) & set(config.female_blocks):
        raise ValueError("a block cannot be reserved for both genders")
