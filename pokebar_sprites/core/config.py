"""Runtime animation settings loaded from JSON."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..utils import file_tools

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnimationTimings(_CamelModel):
    default_frame_time_seconds: float = Field(0.1, gt=0)
    walk_frame_time_seconds: float = Field(0.1, gt=0)
    idle_frame_time_seconds: float = Field(0.15, gt=0)
    sleep_frame_time_seconds: float = Field(0.2, gt=0)
    attack_frame_time_seconds: float = Field(0.08, gt=0)


class SpriteRows(_CamelModel):
    """0-based sheet rows of the directional walk cycles."""

    walk_row_right: int = Field(2, ge=0)
    walk_row_left: int = Field(6, ge=0)


class LoaderConfig(_CamelModel):
    animation: AnimationTimings = Field(default_factory=AnimationTimings)
    sprite: SpriteRows = Field(default_factory=SpriteRows)
    sprite_cache_max_entries: int = Field(30, ge=1)
    hitbox_shrink_factor: float = Field(0.9, gt=0, le=1)
    min_hitbox_size: int = Field(6, ge=1)


def load_config(path: Path) -> LoaderConfig:
    """Read settings from ``path``; a missing or broken file yields the defaults."""

    if not path.exists():
        return LoaderConfig()
    try:
        with path.open("r", encoding="utf-8") as handle:
            return LoaderConfig.model_validate(json.load(handle))
    except (OSError, json.JSONDecodeError, PydanticValidationError) as exc:
        logger.error("Failed to load config %s, using defaults: %s", path, exc)
        return LoaderConfig()


def save_config(path: Path, config: LoaderConfig) -> Path:
    file_tools.ensure_directory(path.parent)
    path.write_text(config.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    return path
