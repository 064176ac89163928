"""Core sprite-sheet analysis shared by the pipeline, the editor and the runtime loader."""

from __future__ import annotations

__all__ = [
    "SpriteGrid",
    "FrameSize",
    "SpriteOffsets",
    "BoundingBox",
    "SpriteGeometry",
    "AnimationFrame",
    "AnimationClip",
    "PipelineSettings",
]

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from PIL import Image


@dataclass(frozen=True)
class SpriteGrid:
    """Number of columns and rows a sheet is tiled into."""

    columns: int
    rows: int

    @property
    def cell_count(self) -> int:
        return self.columns * self.rows


@dataclass(frozen=True)
class FrameSize:
    """Pixel dimensions of a single grid cell."""

    width: int
    height: int


@dataclass(frozen=True)
class SpriteOffsets:
    """Placement offsets derived from the opaque pixels of a sheet."""

    ground_offset_y: int
    center_offset_x: int


@dataclass(frozen=True)
class BoundingBox:
    x: int
    y: int
    width: int
    height: int

    @property
    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0

    @classmethod
    def empty(cls) -> "BoundingBox":
        return cls(0, 0, 0, 0)


@dataclass(frozen=True)
class SpriteGeometry:
    """Offsets plus the union hitbox computed over the analysed frames."""

    offsets: SpriteOffsets
    hitbox: BoundingBox
    frame_width: int
    frame_height: int
    frames_analyzed: int
    frames_with_pixels: int

    @property
    def has_pixels(self) -> bool:
        return self.hitbox.is_valid

    @classmethod
    def empty(cls) -> "SpriteGeometry":
        return cls(SpriteOffsets(0, 0), BoundingBox.empty(), 0, 0, 0, 0)


@dataclass
class AnimationFrame:
    """One cropped frame and the y coordinate its feet should rest on."""

    image: "Image.Image"
    ground_line_y: int


@dataclass
class AnimationClip:
    """Ordered frames of one animation (walk, idle, sleep, ...)."""

    name: str
    frames: list[AnimationFrame]
    frame_time: float = 0.1
    loop: bool = True

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def total_duration(self) -> float:
        return self.frame_count * self.frame_time

    def get_frame(self, index: int) -> AnimationFrame:
        if not self.frames:
            raise IndexError("AnimationClip has no frames")
        index = max(0, min(index, len(self.frames) - 1))
        return self.frames[index]


@dataclass
class PipelineSettings:
    """Inputs of one batch pipeline run."""

    sprite_root: Path
    output_dir: Path
    final_dir: Optional[Path] = None
    workers: int = 1
    hitbox_shrink_factor: float = 0.9
    min_hitbox_size: int = 6
    walk_offset_rows: tuple[int, ...] = field(default=(2, 6))
    dry_run: bool = False
