"""Immutable, bounds-checked view over a decoded raster."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from .errors import InvalidBuffer, OutOfBounds, ProcessingError

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]

_MODE_BYTES_PER_PIXEL = {"L": 1, "RGB": 3, "RGBA": 4}


def load_sheet(path: Path) -> Image.Image:
    """Decode a sheet from disk as RGBA."""

    if not path.exists():
        raise FileNotFoundError(path)
    try:
        with Image.open(path) as image:
            return image.convert("RGBA")
    except (OSError, ValueError) as exc:
        raise ProcessingError(f"Could not decode sprite sheet {path}: {exc}") from exc


class PixelBuffer:
    """Decoded pixels plus the geometry needed to address them.

    ``stride`` is the number of bytes per row and may include padding past
    ``width * bytes_per_pixel``. Only buffers with four or more bytes per pixel
    carry alpha; everything else reads as fully opaque.
    """

    __slots__ = ("_data", "_width", "_height", "_stride", "_bpp", "_alpha")

    def __init__(self, data: BytesLike, width: int, height: int, stride: int, bytes_per_pixel: int):
        if data is None:
            raise InvalidBuffer("data", "no pixel data")
        if width <= 0:
            raise InvalidBuffer("width", f"must be positive, got {width}")
        if height <= 0:
            raise InvalidBuffer("height", f"must be positive, got {height}")
        if bytes_per_pixel <= 0:
            raise InvalidBuffer("bytes_per_pixel", f"must be positive, got {bytes_per_pixel}")
        if stride < width * bytes_per_pixel:
            raise InvalidBuffer("stride", f"{stride} < {width} * {bytes_per_pixel}")
        if len(data) < stride * height:
            raise InvalidBuffer("data", f"{len(data)} bytes < stride * height ({stride * height})")

        self._data = bytes(data)
        self._width = width
        self._height = height
        self._stride = stride
        self._bpp = bytes_per_pixel
        self._alpha: np.ndarray | None = None

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelBuffer":
        """Build a buffer from a Pillow image, normalising exotic modes."""

        if image.mode not in _MODE_BYTES_PER_PIXEL:
            has_alpha = "A" in image.getbands() or "transparency" in image.info
            target = "RGBA" if has_alpha else "RGB"
            logger.debug("Converting %s image to %s for analysis", image.mode, target)
            image = image.convert(target)
        bpp = _MODE_BYTES_PER_PIXEL[image.mode]
        width, height = image.size
        return cls(image.tobytes(), width, height, width * bpp, bpp)

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def stride(self) -> int:
        return self._stride

    @property
    def bytes_per_pixel(self) -> int:
        return self._bpp

    @property
    def has_alpha(self) -> bool:
        return self._bpp >= 4

    def alpha_at(self, x: int, y: int) -> int:
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise OutOfBounds(x, y, self._width, self._height)
        if self._bpp < 4:
            return 255
        return self._data[y * self._stride + x * self._bpp + 3]

    def _pixels(self) -> np.ndarray:
        raw = np.frombuffer(self._data, dtype=np.uint8, count=self._stride * self._height)
        rows = raw.reshape(self._height, self._stride)[:, : self._width * self._bpp]
        return rows.reshape(self._height, self._width, self._bpp)

    def alpha_plane(self) -> np.ndarray:
        """Read-only ``(height, width)`` array of alpha values."""

        if self._alpha is None:
            if self._bpp >= 4:
                alpha = self._pixels()[:, :, 3]
            else:
                alpha = np.full((self._height, self._width), 255, dtype=np.uint8)
                alpha.flags.writeable = False
            self._alpha = alpha
        return self._alpha

    def opaque_mask(self) -> np.ndarray:
        return self.alpha_plane() > 0

    def to_image(self) -> Image.Image:
        pixels = self._pixels()
        if self._bpp == 1:
            return Image.fromarray(np.ascontiguousarray(pixels[:, :, 0]))
        if self._bpp in (3, 4):
            return Image.fromarray(np.ascontiguousarray(pixels))
        raise ProcessingError(f"Cannot build an image from {self._bpp} bytes per pixel")

    def __repr__(self) -> str:
        return (
            f"PixelBuffer(width={self._width}, height={self._height}, "
            f"stride={self._stride}, bytes_per_pixel={self._bpp})"
        )
