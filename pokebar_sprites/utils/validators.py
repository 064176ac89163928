"""Validation helpers for user inputs."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..core import BoundingBox, FrameSize
from ..core.errors import ValidationError


def validate_sprite_root(path: Optional[Path]) -> Path:
    """Ensure the sprite root exists and is a directory."""

    if not path:
        raise ValidationError("No sprite root provided")
    if not path.exists():
        raise ValidationError(f"Sprite root not found: {path}")
    if not path.is_dir():
        raise ValidationError(f"Sprite root is not a directory: {path}")
    return path


def parse_index_list(value: str | None, field: str) -> Optional[list[int]]:
    """Parse a comma separated list of 0-based indices such as ``"2,6"``."""

    if value is None or value.strip() == "":
        return None
    result: list[int] = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            index = int(part)
        except ValueError as exc:
            raise ValidationError(f"{field} must be comma separated integers") from exc
        if index < 0:
            raise ValidationError(f"{field} values must be zero or greater")
        result.append(index)
    return result or None


def validate_unique_id(value: str) -> str:
    """Accept ``NNNN`` or ``NNNN_FFFF`` subject identifiers."""

    dex, sep, form = value.partition("_")
    if len(dex) != 4 or not dex.isdigit():
        raise ValidationError(f"Invalid subject id: {value!r}")
    if sep and (len(form) != 4 or not form.isdigit()):
        raise ValidationError(f"Invalid form in subject id: {value!r}")
    return value


def validate_workers(value: int) -> int:
    if value <= 0:
        raise ValidationError("Workers must be greater than zero")
    return value


def validate_hitbox(hitbox: BoundingBox, frame: Optional[FrameSize] = None) -> BoundingBox:
    """Reject negative origins, empty sizes and boxes starting outside ``frame``."""

    if hitbox.x < 0 or hitbox.y < 0:
        raise ValidationError("Hitbox origin must be zero or greater")
    if hitbox.width <= 0 or hitbox.height <= 0:
        raise ValidationError("Hitbox width and height must be greater than zero")
    if frame is not None and (hitbox.x >= frame.width or hitbox.y >= frame.height):
        raise ValidationError(f"Hitbox origin ({hitbox.x}, {hitbox.y}) lies outside {frame.width}x{frame.height} frame")
    return hitbox
