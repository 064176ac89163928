from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from pokebar_sprites.core.pixel_buffer import PixelBuffer

OPAQUE = (200, 120, 40, 255)


def blank(width: int, height: int) -> np.ndarray:
    return np.zeros((height, width, 4), dtype=np.uint8)


def fill(pixels: np.ndarray, x0: int, y0: int, x1: int, y1: int) -> np.ndarray:
    """Paint the inclusive rectangle ``(x0, y0)..(x1, y1)`` opaque."""

    pixels[y0 : y1 + 1, x0 : x1 + 1] = OPAQUE
    return pixels


def tiled(columns: int, rows: int, frame_w: int, frame_h: int, box: tuple[int, int, int, int]) -> np.ndarray:
    """Sheet with the same cell-local ``box`` painted in every cell."""

    pixels = blank(columns * frame_w, rows * frame_h)
    x0, y0, x1, y1 = box
    for row in range(rows):
        for col in range(columns):
            ox, oy = col * frame_w, row * frame_h
            fill(pixels, ox + x0, oy + y0, ox + x1, oy + y1)
    return pixels


def to_buffer(pixels: np.ndarray) -> PixelBuffer:
    height, width, bpp = pixels.shape
    return PixelBuffer(pixels.tobytes(), width, height, width * bpp, bpp)


def save_png(pixels: np.ndarray, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(pixels, "RGBA").save(path)
    return path


@pytest.fixture()
def sheets():
    """Namespace of synthetic sheet builders."""

    class Sheets:
        blank = staticmethod(blank)
        fill = staticmethod(fill)
        tiled = staticmethod(tiled)
        to_buffer = staticmethod(to_buffer)
        save_png = staticmethod(save_png)

    return Sheets


@pytest.fixture()
def sprite_root(tmp_path: Path) -> Path:
    """SpriteCollab-style tree with one base form and one alternate form.

    ``0001`` has 4x8 walk and idle sheets of 8x8 frames; ``0025/0001`` only
    has an idle sheet.
    """

    root = tmp_path / "sprite"
    walk = tiled(4, 8, 8, 8, (2, 3, 5, 6))
    save_png(walk, root / "0001" / "Walk-Anim.png")
    save_png(walk, root / "0001" / "Idle-Anim.png")
    save_png(tiled(2, 8, 12, 12, (3, 2, 8, 9)), root / "0025" / "0001" / "Idle-Anim.png")
    return root
