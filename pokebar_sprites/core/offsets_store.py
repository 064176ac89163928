"""Persisted per-subject offset adjustments (``pokemon_offsets_*.json``)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError, model_validator
from pydantic.alias_generators import to_camel

from . import FrameSize, SpriteGrid
from .errors import ProcessingError
from ..utils import file_tools

logger = logging.getLogger(__name__)


class OffsetAdjustment(BaseModel):
    """Placement data for one subject, possibly reviewed by a human.

    Frame and grid fields are optional; they only count when all four are
    present and positive (see ``has_frame_grid``).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    unique_id: str
    ground_offset_y: int = 0
    center_offset_x: int = 0
    reviewed: bool = False
    hitbox_x: int = 0
    hitbox_y: int = 0
    hitbox_width: int = 0
    hitbox_height: int = 0
    frame_width: Optional[int] = None
    frame_height: Optional[int] = None
    grid_columns: Optional[int] = None
    grid_rows: Optional[int] = None
    primary_sprite_file: Optional[str] = None
    walk_sprite_file: Optional[str] = None
    idle_sprite_file: Optional[str] = None
    fight_sprite_file: Optional[str] = None
    has_attack_animation: bool = False

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        lookup: dict[str, str] = {}
        for name, info in cls.model_fields.items():
            lookup[name.lower()] = info.alias or name
            lookup[(info.alias or name).lower()] = info.alias or name
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            normalized[lookup.get(str(key).lower(), key)] = value
        if "uniqueId" not in normalized and "unique_id" not in normalized:
            legacy = next((v for k, v in data.items() if str(k).lower() == "dexnumber"), None)
            if legacy is not None:
                normalized["uniqueId"] = f"{int(legacy):04d}"
        return normalized

    @property
    def has_frame_grid(self) -> bool:
        values = (self.frame_width, self.frame_height, self.grid_columns, self.grid_rows)
        return all(v is not None and v > 0 for v in values)

    @property
    def stored_grid(self) -> Optional[tuple[SpriteGrid, FrameSize]]:
        if not self.has_frame_grid:
            return None
        return SpriteGrid(self.grid_columns, self.grid_rows), FrameSize(self.frame_width, self.frame_height)

    def matches_sheet(self, width: int, height: int) -> bool:
        """True when the stored frame and grid tile exactly ``width`` x ``height``."""

        if not self.has_frame_grid:
            return False
        return self.frame_width * self.grid_columns == width and self.frame_height * self.grid_rows == height

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def _coalesce_positive(value: Optional[int], fallback: Optional[int]) -> Optional[int]:
    if value is not None and value > 0:
        return value
    return fallback


def parse_adjustments(text: str) -> dict[str, OffsetAdjustment]:
    """Parse a JSON array of records; the last record of a duplicated id wins."""

    try:
        items = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProcessingError(f"Offsets file is not valid JSON: {exc}") from exc
    if items is None:
        return {}
    if not isinstance(items, list):
        raise ProcessingError("Offsets file must contain a JSON array")

    records: dict[str, OffsetAdjustment] = {}
    for item in items:
        try:
            record = OffsetAdjustment.model_validate(item)
        except PydanticValidationError as exc:
            raise ProcessingError(f"Invalid offsets record {item!r}: {exc}") from exc
        records[record.unique_id] = record
    return records


def load_adjustments(path: Path) -> dict[str, OffsetAdjustment]:
    if not path.exists():
        return {}
    records = parse_adjustments(path.read_text(encoding="utf-8"))
    logger.debug("Loaded %s offset adjustments from %s", len(records), path)
    return records


def save_adjustments(path: Path, records: Iterable[OffsetAdjustment]) -> Path:
    """Write every record with all known fields, ordered by unique id."""

    ordered = sorted(records, key=lambda r: r.unique_id)
    file_tools.ensure_directory(path.parent)
    payload = [record.to_json_dict() for record in ordered]
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logger.info("Wrote %s offset adjustments to %s", len(ordered), path)
    return path


def update_adjustment(path: Path, record: OffsetAdjustment) -> dict[str, OffsetAdjustment]:
    records = load_adjustments(path)
    records[record.unique_id] = record
    save_adjustments(path, records.values())
    return records


def remove_adjustment(path: Path, unique_id: str) -> bool:
    """Delete one subject's record. Returns ``False`` when it was not stored."""

    records = load_adjustments(path)
    if records.pop(unique_id, None) is None:
        return False
    save_adjustments(path, records.values())
    logger.info("Removed offset adjustment %s from %s", unique_id, path)
    return True


def merge_detected(
    existing: Optional[OffsetAdjustment],
    detected: OffsetAdjustment,
    sheet_size: Optional[tuple[int, int]] = None,
) -> OffsetAdjustment:
    """Combine a stored record with freshly detected values.

    Reviewed records keep their offsets and hitbox. A stored frame/grid
    survives only while it still tiles the primary sheet (``sheet_size``).
    """

    if existing is None:
        return detected

    if existing.reviewed:
        placement = existing.model_dump(
            include={"ground_offset_y", "center_offset_x", "reviewed", "hitbox_x", "hitbox_y", "hitbox_width", "hitbox_height"}
        )
    else:
        placement = detected.model_dump(
            include={"ground_offset_y", "center_offset_x", "hitbox_x", "hitbox_y", "hitbox_width", "hitbox_height"}
        )
        placement["reviewed"] = False

    stored_valid = existing.has_frame_grid and (sheet_size is None or existing.matches_sheet(*sheet_size))
    if stored_valid:
        geometry = {
            "frame_width": _coalesce_positive(existing.frame_width, detected.frame_width),
            "frame_height": _coalesce_positive(existing.frame_height, detected.frame_height),
            "grid_columns": _coalesce_positive(existing.grid_columns, detected.grid_columns),
            "grid_rows": _coalesce_positive(existing.grid_rows, detected.grid_rows),
        }
    else:
        geometry = {
            "frame_width": detected.frame_width,
            "frame_height": detected.frame_height,
            "grid_columns": detected.grid_columns,
            "grid_rows": detected.grid_rows,
        }

    fight_file = existing.fight_sprite_file or detected.fight_sprite_file
    return OffsetAdjustment(
        unique_id=detected.unique_id,
        **placement,
        **geometry,
        primary_sprite_file=existing.primary_sprite_file or detected.primary_sprite_file,
        walk_sprite_file=existing.walk_sprite_file or detected.walk_sprite_file,
        idle_sprite_file=existing.idle_sprite_file or detected.idle_sprite_file,
        fight_sprite_file=fight_file,
        has_attack_animation=existing.has_attack_animation or bool(fight_file),
    )
