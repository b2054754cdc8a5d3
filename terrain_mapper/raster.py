"""
In-memory RGBA8 raster used for stitched imagery and Terrain-RGB data.
"""

import io
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from PIL import Image

RGBA = Tuple[int, int, int, int]

# Fill for tiles that could not be loaded
PLACEHOLDER_COLOR: RGBA = (128, 128, 128, 255)


@dataclass
class RasterCanvas:
    """A height x width x 4 uint8 pixel buffer."""

    pixels: np.ndarray

    def __post_init__(self):
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"Expected an (height, width, 4) RGBA array, got shape {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            self.pixels = self.pixels.astype(np.uint8)

    @classmethod
    def blank(cls, width: int, height: int) -> "RasterCanvas":
        """Create a fully transparent canvas."""
        return cls(np.zeros((height, width, 4), dtype=np.uint8))

    @classmethod
    def from_image_bytes(cls, data: bytes, size: Optional[int] = None) -> "RasterCanvas":
        """
        Decode an encoded image (PNG, JPEG, WebP) into an RGBA canvas.

        Args:
            data: Encoded image bytes
            size: If given, the image is resized to a size x size square

        Returns:
            RasterCanvas: Decoded pixels
        """
        with Image.open(io.BytesIO(data)) as img:
            img = img.convert("RGBA")
            if size is not None and img.size != (size, size):
                img = img.resize((size, size), resample=Image.Resampling.NEAREST)
            return cls(np.array(img, dtype=np.uint8))

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def fill_rect(self, x: int, y: int, width: int, height: int, color: RGBA) -> None:
        """Fill a rectangle (clipped to the canvas) with a solid color."""
        self.pixels[max(0, y):y + height, max(0, x):x + width] = color

    def draw(self, source: "RasterCanvas", x: int, y: int) -> None:
        """Copy another canvas onto this one with its top-left corner at (x, y)."""
        h = min(source.height, self.height - y)
        w = min(source.width, self.width - x)
        if h <= 0 or w <= 0:
            return
        self.pixels[y:y + h, x:x + w] = source.pixels[:h, :w]

    def crop(self, x: float, y: float, width: float, height: float,
             smooth: bool = True) -> "RasterCanvas":
        """
        Cut a sub-pixel region out of the canvas.

        The source rectangle may have fractional origin and size. The output is
        ceil(width) x ceil(height) pixels, resampled from the source rectangle.

        Args:
            x, y: Top-left corner of the source rectangle in pixels
            width, height: Size of the source rectangle in pixels
            smooth: Bilinear resampling when True, nearest neighbour otherwise

        Returns:
            RasterCanvas: The cropped canvas
        """
        out_width = max(1, int(math.ceil(width)))
        out_height = max(1, int(math.ceil(height)))
        # Pillow rejects boxes reaching outside the source image
        box = (
            max(0.0, x),
            max(0.0, y),
            min(float(self.width), x + width),
            min(float(self.height), y + height),
        )
        resample = Image.Resampling.BILINEAR if smooth else Image.Resampling.NEAREST

        img = Image.fromarray(self.pixels)
        cropped = img.resize((out_width, out_height), resample=resample, box=box)
        return RasterCanvas(np.array(cropped, dtype=np.uint8))

    def to_png_bytes(self) -> bytes:
        """Encode the canvas as PNG."""
        buffer = io.BytesIO()
        Image.fromarray(self.pixels).save(buffer, format="PNG")
        return buffer.getvalue()
