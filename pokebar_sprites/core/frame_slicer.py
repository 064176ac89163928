"""Cut a sheet into ordered animation frames."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from PIL import Image

from . import AnimationClip, AnimationFrame, BoundingBox, FrameSize, SpriteGrid
from .pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)

Sheet = Union[Image.Image, PixelBuffer]


def filter_selection(selection: Optional[Iterable[int]], limit: int) -> list[int]:
    """Indices in ``[0, limit)`` in caller order, without duplicates."""

    result: list[int] = []
    if selection is None:
        return result
    for value in selection:
        if 0 <= value < limit and value not in result:
            result.append(value)
    return result


def ground_line(frame_height: int, ground_offset_y: int) -> int:
    return frame_height - max(0, min(ground_offset_y, frame_height))


def clamp_hitbox(hitbox: BoundingBox, frame: FrameSize) -> BoundingBox:
    """Shrink ``hitbox`` so it lies inside the frame, keeping at least one pixel."""

    x = max(0, min(hitbox.x, frame.width - 1))
    y = max(0, min(hitbox.y, frame.height - 1))
    width = max(1, min(hitbox.width, frame.width - x))
    height = max(1, min(hitbox.height, frame.height - y))
    return BoundingBox(x, y, width, height)


def slice_frames(
    sheet: Sheet,
    grid: SpriteGrid,
    frame: FrameSize,
    rows: Optional[Iterable[int]] = None,
    columns: Optional[Iterable[int]] = None,
    *,
    required: bool = False,
    ground_offset_y: int = 0,
    hitbox: Optional[BoundingBox] = None,
) -> list[AnimationFrame]:
    """Crop the selected cells row by row.

    Empty selections after filtering mean "all rows/columns" unless
    ``required`` is set, in which case nothing is produced. Cells that do not
    fit inside the sheet are skipped.
    """

    if isinstance(sheet, PixelBuffer):
        sheet = sheet.to_image()
    rows = list(rows) if rows is not None else None
    columns = list(columns) if columns is not None else None

    selected_rows = filter_selection(rows, grid.rows)
    selected_cols = filter_selection(columns, grid.columns)
    if required:
        if rows is not None and not selected_rows:
            logger.debug("Required rows %s not present in %s-row grid", rows, grid.rows)
            return []
        if columns is not None and not selected_cols:
            logger.debug("Required columns %s not present in %s-column grid", columns, grid.columns)
            return []
    if not selected_rows:
        selected_rows = list(range(grid.rows))
    if not selected_cols:
        selected_cols = list(range(grid.columns))

    line = ground_line(frame.height, ground_offset_y)
    crop_box = None
    if hitbox is not None and hitbox.is_valid:
        crop_box = clamp_hitbox(hitbox, frame)
        line = max(0, min(line - crop_box.y, crop_box.height))

    sheet_w, sheet_h = sheet.size
    frames: list[AnimationFrame] = []
    for row in selected_rows:
        for col in selected_cols:
            src_x = col * frame.width
            src_y = row * frame.height
            if src_x + frame.width > sheet_w or src_y + frame.height > sheet_h:
                continue
            if crop_box is not None:
                box = (
                    src_x + crop_box.x,
                    src_y + crop_box.y,
                    src_x + crop_box.x + crop_box.width,
                    src_y + crop_box.y + crop_box.height,
                )
            else:
                box = (src_x, src_y, src_x + frame.width, src_y + frame.height)
            frames.append(AnimationFrame(image=sheet.crop(box), ground_line_y=line))
    return frames


def build_clip(
    name: str,
    sheet: Sheet,
    grid: SpriteGrid,
    frame: FrameSize,
    rows: Optional[Iterable[int]] = None,
    columns: Optional[Iterable[int]] = None,
    *,
    required: bool = False,
    ground_offset_y: int = 0,
    hitbox: Optional[BoundingBox] = None,
    frame_time: float = 0.1,
    loop: bool = True,
) -> Optional[AnimationClip]:
    """``slice_frames`` wrapped in a clip; ``None`` when no frame was produced."""

    frames = slice_frames(
        sheet,
        grid,
        frame,
        rows,
        columns,
        required=required,
        ground_offset_y=ground_offset_y,
        hitbox=hitbox,
    )
    if not frames:
        return None
    return AnimationClip(name=name, frames=frames, frame_time=frame_time, loop=loop)
