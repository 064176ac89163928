"""Ground-contact and horizontal-center offsets for a sliced sprite sheet."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import numpy as np

from . import BoundingBox, FrameSize, SpriteGeometry, SpriteGrid, SpriteOffsets
from .grid_detector import cell_bounds
from .pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)

DEFAULT_HITBOX_SHRINK = 0.9
DEFAULT_MIN_HITBOX_SIZE = 4


def _clamp(value, low, high):
    return max(low, min(value, high))


def select_rows(grid: SpriteGrid, rows_to_use: Optional[Iterable[int]]) -> list[int]:
    """Valid row indices to sample; every row when the selection is missing or empty."""

    if rows_to_use is not None:
        allowed = sorted({row for row in rows_to_use if 0 <= row < grid.rows})
        if allowed:
            return allowed
    return list(range(grid.rows))


def compute_geometry(
    buffer: PixelBuffer,
    grid: SpriteGrid,
    frame: FrameSize,
    rows_to_use: Optional[Iterable[int]] = None,
    hitbox_shrink: float = DEFAULT_HITBOX_SHRINK,
    min_hitbox_size: int = DEFAULT_MIN_HITBOX_SIZE,
) -> SpriteGeometry:
    """Offsets plus a union hitbox over the sampled cells.

    The ground offset is the largest bottom padding among non-empty cells, so
    no frame appears to float. The center offset averages, over non-empty
    cells, how far the opaque extent's midpoint sits from the frame center.
    """

    rows = select_rows(grid, rows_to_use)
    bounds = cell_bounds(buffer.opaque_mask(), grid, frame)
    occupied = bounds.occupied[rows]
    frames_analyzed = len(rows) * grid.columns

    if not occupied.any():
        return SpriteGeometry(SpriteOffsets(0, 0), BoundingBox.empty(), frame.width, frame.height, frames_analyzed, 0)

    min_x = bounds.min_x[rows][occupied]
    max_x = bounds.max_x[rows][occupied]
    min_y = bounds.min_y[rows][occupied]
    max_y = bounds.max_y[rows][occupied]

    ground_offset = int((frame.height - 1 - max_y).max())
    centers = (min_x + max_x) / 2.0 - frame.width / 2.0
    center_offset = int(round(float(np.mean(centers))))

    union_min_x, union_max_x = int(min_x.min()), int(max_x.max())
    union_min_y, union_max_y = int(min_y.min()), int(max_y.max())
    union_w = union_max_x - union_min_x + 1
    union_h = union_max_y - union_min_y + 1
    shrink = _clamp(hitbox_shrink, 0.1, 1.0)
    target_w = _clamp(int(round(union_w * shrink)), min_hitbox_size, frame.width)
    target_h = _clamp(int(round(union_h * shrink)), min_hitbox_size, frame.height)
    # Frames smaller than the minimum hitbox keep the whole frame.
    target_w = min(target_w, frame.width)
    target_h = min(target_h, frame.height)

    hitbox_x = int(round(union_min_x + union_w / 2.0 - target_w / 2.0))
    hitbox_y = int(round(union_min_y + union_h / 2.0 - target_h / 2.0))
    hitbox = BoundingBox(
        _clamp(hitbox_x, 0, frame.width - target_w),
        _clamp(hitbox_y, 0, frame.height - target_h),
        target_w,
        target_h,
    )

    frames_with_pixels = int(occupied.sum())
    logger.debug(
        "Geometry over %s/%s frames: ground=%s center=%s hitbox=%s",
        frames_with_pixels,
        frames_analyzed,
        ground_offset,
        center_offset,
        hitbox,
    )
    return SpriteGeometry(
        SpriteOffsets(ground_offset, center_offset),
        hitbox,
        frame.width,
        frame.height,
        frames_analyzed,
        frames_with_pixels,
    )


def compute_offsets(
    buffer: PixelBuffer,
    grid: SpriteGrid,
    frame: FrameSize,
    rows_to_use: Optional[Iterable[int]] = None,
) -> SpriteOffsets:
    return compute_geometry(buffer, grid, frame, rows_to_use).offsets
