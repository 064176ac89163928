"""Infer the frame grid of a sprite sheet from its alpha channel."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable

import numpy as np

from . import FrameSize, SpriteGrid
from .errors import OutOfBounds
from .pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)

STANDARD_ROWS = 8
MAX_STANDARD_COLUMNS = 12
MAX_GENERIC_CELLS = 8
EMPTY_CELL_PENALTY = 10000
# Conventional layouts tried in order when the 8-row search does not apply.
STANDARD_LAYOUTS = ((6, 8), (4, 2), (4, 1))


@dataclass(frozen=True)
class CellBounds:
    """Per-cell tight bounding boxes, each array shaped ``(rows, columns)``.

    Coordinates are local to the cell. Entries of empty cells are meaningless
    and must be masked with ``occupied``.
    """

    occupied: np.ndarray
    min_x: np.ndarray
    max_x: np.ndarray
    min_y: np.ndarray
    max_y: np.ndarray

    @property
    def widths(self) -> np.ndarray:
        return self.max_x - self.min_x + 1

    @property
    def heights(self) -> np.ndarray:
        return self.max_y - self.min_y + 1


def cell_bounds(mask: np.ndarray, grid: SpriteGrid, frame: FrameSize) -> CellBounds:
    """Bounding boxes of ``True`` pixels for every cell of ``grid``."""

    used_h = grid.rows * frame.height
    used_w = grid.columns * frame.width
    height, width = mask.shape
    if used_w > width or used_h > height:
        raise OutOfBounds(used_w - 1, used_h - 1, width, height)

    cells = mask[:used_h, :used_w].reshape(grid.rows, frame.height, grid.columns, frame.width)
    cells = cells.transpose(0, 2, 1, 3)
    cols_hit = cells.any(axis=2)  # (rows, columns, frame.width)
    rows_hit = cells.any(axis=3)  # (rows, columns, frame.height)

    occupied = cols_hit.any(axis=2)
    min_x = cols_hit.argmax(axis=2)
    max_x = frame.width - 1 - cols_hit[:, :, ::-1].argmax(axis=2)
    min_y = rows_hit.argmax(axis=2)
    max_y = frame.height - 1 - rows_hit[:, :, ::-1].argmax(axis=2)
    return CellBounds(occupied, min_x, max_x, min_y, max_y)


def _seam_contacts(bounds: CellBounds, frame: FrameSize) -> int:
    """Count occupied cells whose content touches an edge shared with another cell."""

    rows, columns = bounds.occupied.shape
    col_idx = np.arange(columns)[np.newaxis, :]
    row_idx = np.arange(rows)[:, np.newaxis]
    touches = (
        ((bounds.min_x == 0) & (col_idx > 0))
        | ((bounds.max_x == frame.width - 1) & (col_idx < columns - 1))
        | ((bounds.min_y == 0) & (row_idx > 0))
        | ((bounds.max_y == frame.height - 1) & (row_idx < rows - 1))
    )
    return int((touches & bounds.occupied).sum())


def _evaluate(mask: np.ndarray, columns: int, rows: int, frame_w: int, frame_h: int) -> tuple[float, int]:
    frame = FrameSize(frame_w, frame_h)
    bounds = cell_bounds(mask, SpriteGrid(columns, rows), frame)
    occupied = bounds.occupied
    empty = int(occupied.size - occupied.sum())
    if empty == occupied.size:
        return math.inf, 0

    widths = bounds.widths[occupied]
    heights = bounds.heights[occupied]
    variation = int(widths.max() - widths.min()) + int(heights.max() - heights.min())
    return float(variation + EMPTY_CELL_PENALTY * empty), _seam_contacts(bounds, frame)


def score_grid(buffer: PixelBuffer, columns: int, rows: int, frame_w: int, frame_h: int) -> float:
    """Lower is better: silhouette size variation plus a heavy penalty per empty cell.

    A grid whose cells are all empty scores ``math.inf``.
    """

    return _evaluate(buffer.opaque_mask(), columns, rows, frame_w, frame_h)[0]


def _pick_best_grid(
    buffer: PixelBuffer, column_candidates: Iterable[int], row_candidates: Iterable[int]
) -> tuple[SpriteGrid, FrameSize]:
    mask = buffer.opaque_mask()
    row_candidates = list(row_candidates)
    best_key: tuple[float, int, int] | None = None
    best = (SpriteGrid(1, 1), FrameSize(buffer.width, buffer.height))

    for columns in column_candidates:
        for rows in row_candidates:
            frame_w = buffer.width // columns
            frame_h = buffer.height // rows
            if frame_w == 0 or frame_h == 0:
                continue
            score, seams = _evaluate(mask, columns, rows, frame_w, frame_h)
            if math.isinf(score):
                continue
            # Ties: fewer sprites cut by a seam, then the finer grid.
            key = (score, seams, -(columns * rows))
            if best_key is None or key < best_key:
                best_key = key
                best = (SpriteGrid(columns, rows), FrameSize(frame_w, frame_h))

    if best_key is None:
        logger.debug("No candidate grid scored for %sx%s sheet, using whole sheet", buffer.width, buffer.height)
    return best


def _divisors(total: int, limit: int) -> list[int]:
    return [n for n in range(1, min(limit, total) + 1) if total % n == 0]


def _is_transparent_column(buffer: PixelBuffer, x: int) -> bool:
    if x < 0 or x >= buffer.width:
        return False
    return not bool(buffer.opaque_mask()[:, x].any())


def _has_transparent_column_near(buffer: PixelBuffer, x: int) -> bool:
    return any(_is_transparent_column(buffer, x + dx) for dx in (-1, 0, 1))


def has_four_column_separators(buffer: PixelBuffer) -> bool:
    """True when fully transparent columns split the sheet into four equal strips."""

    if not buffer.has_alpha:
        return False
    if buffer.width % 4 != 0 or buffer.height % STANDARD_ROWS != 0:
        return False

    frame_w = buffer.width // 4
    return all(_has_transparent_column_near(buffer, frame_w * k) for k in (1, 2, 3))


def detect_grid(buffer: PixelBuffer, prefer_standard: bool) -> tuple[SpriteGrid, FrameSize]:
    """Best-fit ``(grid, frame)`` for ``buffer``.

    With ``prefer_standard`` the 8-row layout used by walk and idle sheets is
    searched first, then the fixed conventions in ``STANDARD_LAYOUTS``. The
    generic search scores every dividing grid up to 8x8. A sheet without any
    opaque pixel is treated as a single frame.
    """

    width, height = buffer.width, buffer.height
    whole_sheet = (SpriteGrid(1, 1), FrameSize(width, height))

    if not buffer.opaque_mask().any():
        logger.debug("Sheet %sx%s is fully transparent, treating it as one frame", width, height)
        return whole_sheet

    if prefer_standard and height % STANDARD_ROWS == 0:
        grid, frame = _pick_best_grid(
            buffer, _divisors(width, MAX_STANDARD_COLUMNS), [STANDARD_ROWS]
        )
        if grid.rows == STANDARD_ROWS:
            if grid.columns == 1 and has_four_column_separators(buffer):
                logger.debug("Transparent separators found, overriding to 4x%s", STANDARD_ROWS)
                return SpriteGrid(4, STANDARD_ROWS), FrameSize(width // 4, height // STANDARD_ROWS)
            return grid, frame

    if prefer_standard:
        for columns, rows in STANDARD_LAYOUTS:
            if width % columns == 0 and height % rows == 0:
                return SpriteGrid(columns, rows), FrameSize(width // columns, height // rows)

    grid, frame = _pick_best_grid(
        buffer, _divisors(width, MAX_GENERIC_CELLS), _divisors(height, MAX_GENERIC_CELLS)
    )
    if grid == whole_sheet[0]:
        logger.debug("Grid detection degraded to a single %sx%s frame", width, height)
    return grid, frame
