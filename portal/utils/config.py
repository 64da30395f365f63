"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_blocks(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    male_blocks: tuple[str, ...]
    female_blocks: tuple[str, ...]
    seed_demo_data: bool
    demo_random_seed: int
    demo_rooms_per_block: int
    demo_tag_count: int
    demo_trainee_count: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests derive variants via `replace`."""
    return Settings(
        app_name=os.getenv("PORTAL_APP_NAME", "Trainee Allocation Portal"),
        app_version=os.getenv("PORTAL_APP_VERSION", "1.0.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_path=Path(os.getenv("PORTAL_DATABASE_PATH", "data/portal.db")),
        male_blocks=_env_blocks("PORTAL_MALE_BLOCKS", ("A", "B")),
        female_blocks=_env_blocks("PORTAL_FEMALE_BLOCKS", ("C", "D")),
        seed_demo_data=_env_bool("PORTAL_SEED_DEMO_DATA", True),
        demo_random_seed=int(os.getenv("PORTAL_DEMO_RANDOM_SEED", "42")),
        demo_rooms_per_block=int(os.getenv("PORTAL_DEMO_ROOMS_PER_BLOCK", "4")),
        demo_tag_count=int(os.getenv("PORTAL_DEMO_TAG_COUNT", "20")),
        demo_trainee_count=int(os.getenv("PORTAL_DEMO_TRAINEE_COUNT", "16")),
    )
