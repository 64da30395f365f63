"""Tests for allocation block configuration validation.

Covers every rejection branch in validate_allocation_config().
"""

from __future__ import annotations

import pytest

from portal.domain.constraints import AllocationConfig, validate_allocation_config
from portal.domain.models import Gender


def valid_config(**overrides) -> AllocationConfig:
    """Return a valid baseline AllocationConfig, optionally overriding fields."""
    defaults = {
        "male_blocks": ("A", "B"),
        "female_blocks": ("C", "D"),
    }
    defaults.update(overrides)
    return AllocationConfig(**defaults)


# --- Baseline pass ---

def test_valid_config_passes() -> None:
    """A fully valid config must not raise."""
    validate_allocation_config(valid_config())


def test_more_than_two_blocks_per_gender_passes() -> None:
    validate_allocation_config(valid_config(male_blocks=("A", "B", "E"), female_blocks=("C",)))


# --- empty block sets ---

def test_empty_male_blocks_raises() -> None:
    with pytest.raises(ValueError):
        validate_allocation_config(valid_config(male_blocks=()))


def test_empty_female_blocks_raises() -> None:
    with pytest.raises(ValueError):
        validate_allocation_config(valid_config(female_blocks=()))


def test_blank_block_name_raises() -> None:
    with pytest.raises(ValueError):
        validate_allocation_config(valid_config(male_blocks=("A", " ")))


# --- duplicates and overlap ---

def test_repeated_block_raises() -> None:
    with pytest.raises(ValueError):
        validate_allocation_config(valid_config(female_blocks=("C", "C")))


def test_block_shared_between_genders_raises() -> None:
    with pytest.raises(ValueError):
        validate_allocation_config(valid_config(male_blocks=("A", "C")))


# --- lookup ---

def test_blocks_for_gender() -> None:
    config = valid_config()
    assert config.blocks_for(Gender.MALE) == ("A", "B")
    assert config.blocks_for(Gender.FEMALE) == ("C", "D")
