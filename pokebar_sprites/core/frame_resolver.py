"""Choose between declared, stored and detected frame geometry for a sheet."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from . import FrameSize, SpriteGrid
from .grid_detector import detect_grid
from .offsets_store import OffsetAdjustment
from .pixel_buffer import PixelBuffer
from .sprite_files import AnimationType

logger = logging.getLogger(__name__)

SOURCE_DECLARED = "declared"
SOURCE_STORED = "stored"
SOURCE_DETECTED = "detected"
SOURCE_STORED_FRAME = "stored_frame"

# Stored grids describe the primary sheet; these types always re-derive theirs.
# TODO: replace with a per-file flag stored on OffsetAdjustment.
IGNORE_STORED_GRID = frozenset({AnimationType.WALK, AnimationType.FIGHT})


@dataclass(frozen=True)
class FrameResolution:
    grid: SpriteGrid
    frame: FrameSize
    source: str

    @property
    def is_degenerate(self) -> bool:
        return self.grid.columns == 1 and self.grid.rows == 1


def grid_from_frame(width: int, height: int, frame: Optional[FrameSize]) -> Optional[SpriteGrid]:
    """Grid implied by ``frame`` on a ``width`` x ``height`` sheet, if it tiles evenly."""

    if frame is None or frame.width <= 0 or frame.height <= 0:
        return None
    if width % frame.width != 0 or height % frame.height != 0:
        return None
    columns = width // frame.width
    rows = height // frame.height
    if columns <= 0 or rows <= 0:
        return None
    return SpriteGrid(columns, rows)


def _stored_frame_fallback(
    stored: Optional[OffsetAdjustment], width: int, height: int
) -> Optional[tuple[SpriteGrid, FrameSize]]:
    if stored is None or not stored.frame_width or not stored.frame_height:
        return None
    if stored.frame_width <= 0 or stored.frame_height <= 0:
        return None
    frame = FrameSize(stored.frame_width, stored.frame_height)
    grid = grid_from_frame(width, height, frame)
    if grid is None or grid.cell_count <= 1:
        return None
    return grid, frame


def resolve_frame(
    buffer: PixelBuffer,
    animation_type: AnimationType,
    *,
    declared_frame: Optional[FrameSize] = None,
    stored: Optional[OffsetAdjustment] = None,
    prefer_standard: bool = False,
) -> FrameResolution:
    """Pick the geometry used to slice ``buffer``.

    Order: a declared frame size that tiles the sheet; a stored grid whose
    total size matches the sheet (skipped for ``IGNORE_STORED_GRID`` types);
    detection. A degenerate 1x1 detection yields to a stored frame size that
    tiles the sheet into several cells.
    """

    width, height = buffer.width, buffer.height

    declared_grid = grid_from_frame(width, height, declared_frame)
    if declared_grid is not None:
        return FrameResolution(declared_grid, declared_frame, SOURCE_DECLARED)
    if declared_frame is not None:
        logger.debug("Declared frame %s does not tile %sx%s sheet", declared_frame, width, height)

    if stored is not None and animation_type not in IGNORE_STORED_GRID and stored.matches_sheet(width, height):
        grid, frame = stored.stored_grid
        return FrameResolution(grid, frame, SOURCE_STORED)

    grid, frame = detect_grid(buffer, prefer_standard)
    if grid.cell_count == 1:
        fallback = _stored_frame_fallback(stored, width, height)
        if fallback is not None:
            logger.debug("Detection degenerate for %s, using stored frame %s", stored.unique_id, fallback[1])
            return FrameResolution(fallback[0], fallback[1], SOURCE_STORED_FRAME)
    return FrameResolution(grid, frame, SOURCE_DETECTED)
