"""Image utility helpers for the editor surface."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw

from ..core import BoundingBox, FrameSize, SpriteGrid
from ..core.pixel_buffer import load_sheet
from ..utils import file_tools

logger = logging.getLogger(__name__)

GRID_COLOR = (0, 170, 255, 160)
GROUND_COLOR = (255, 60, 60, 220)
CENTER_COLOR = (60, 220, 60, 200)
HITBOX_COLOR = (255, 200, 0, 220)
MAX_PREVIEW_SCALE = 8


def load_image(path: Path) -> Image.Image:
    """Load an image safely."""

    return load_sheet(path)


def save_image(image: Image.Image, path: Path) -> Path:
    """Persist an image to disk."""

    file_tools.ensure_directory(path.parent)
    image.save(path)
    return path


def to_mask(image: Image.Image) -> Image.Image:
    """Return an RGBA red-tinted mask from alpha channel."""

    img = image.convert("RGBA")
    alpha = img.split()[-1]
    red = Image.new("L", img.size, 255)
    transparent = Image.new("L", img.size, 0)
    return Image.merge("RGBA", (red, transparent, transparent, alpha))


def apply_scale(image: Image.Image, scale: int) -> Image.Image:
    """Integer nearest-neighbour upscale so pixel art stays crisp."""

    scale = max(1, min(scale, MAX_PREVIEW_SCALE))
    if scale == 1:
        return image
    return image.resize((image.width * scale, image.height * scale), Image.NEAREST)


def draw_analysis_overlay(
    image: Image.Image,
    grid: SpriteGrid,
    frame: FrameSize,
    ground_offset_y: int = 0,
    center_offset_x: int = 0,
    hitbox: Optional[BoundingBox] = None,
    scale: int = 1,
) -> Image.Image:
    """Scale ``image`` and draw cell borders, ground line, center line and hitbox per cell."""

    scale = max(1, min(scale, MAX_PREVIEW_SCALE))
    base = apply_scale(image.convert("RGBA"), scale)
    overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)

    cell_w = frame.width * scale
    cell_h = frame.height * scale
    ground = max(0, min(ground_offset_y, frame.height))
    for row in range(grid.rows):
        for col in range(grid.columns):
            left = col * cell_w
            top = row * cell_h
            if left + cell_w > base.width or top + cell_h > base.height:
                continue
            draw.rectangle((left, top, left + cell_w - 1, top + cell_h - 1), outline=GRID_COLOR)

            ground_y = top + (frame.height - ground) * scale - 1
            draw.line((left, ground_y, left + cell_w - 1, ground_y), fill=GROUND_COLOR)

            center_x = left + (frame.width // 2 + center_offset_x) * scale
            if left <= center_x < left + cell_w:
                draw.line((center_x, top, center_x, top + cell_h - 1), fill=CENTER_COLOR)

            if hitbox is not None and hitbox.is_valid:
                draw.rectangle(
                    (
                        left + hitbox.x * scale,
                        top + hitbox.y * scale,
                        left + (hitbox.x + hitbox.width) * scale - 1,
                        top + (hitbox.y + hitbox.height) * scale - 1,
                    ),
                    outline=HITBOX_COLOR,
                )

    return Image.alpha_composite(base, overlay)


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
