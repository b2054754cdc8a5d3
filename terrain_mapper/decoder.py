"""
Terrain-RGB elevation decoding.

Each pixel packs a 24 bit integer into its R, G and B channels, counting
decimeters above -10000 m:

    height_m = -10000 + (R * 65536 + G * 256 + B) * 0.1

Decoded heights are capped at ABSOLUTE_MAX_HEIGHT before any filtering so that
corrupt pixels cannot distort the statistics of the artifact filters. Negative
heights are valid terrain and are never floored.
"""

import numpy as np

from .heightfield import HeightField

ELEVATION_OFFSET = -10000.0
ELEVATION_STEP = 0.1
ABSOLUTE_MAX_HEIGHT = 8000.0  # meters


def terrain_rgb_to_height(r: int, g: int, b: int) -> float:
    """Decode one Terrain-RGB pixel to meters, capped at ABSOLUTE_MAX_HEIGHT."""
    height = ELEVATION_OFFSET + ((r * 65536 + g * 256 + b) * ELEVATION_STEP)
    return min(height, ABSOLUTE_MAX_HEIGHT)


def decode_terrain_rgb(pixels: np.ndarray) -> HeightField:
    """
    Decode a Terrain-RGB raster into a height field.

    Args:
        pixels (numpy.ndarray): (height, width, 3 or 4) uint8 array; alpha is ignored

    Returns:
        HeightField: Elevations in meters, same width and height as the raster
    """
    if pixels.ndim != 3 or pixels.shape[2] < 3:
        raise ValueError(f"Expected an (height, width, 3|4) array, got shape {pixels.shape}")

    rgb = pixels[:, :, :3].astype(np.int64)
    encoded = rgb[:, :, 0] * 65536 + rgb[:, :, 1] * 256 + rgb[:, :, 2]
    heights = ELEVATION_OFFSET + encoded * ELEVATION_STEP
    np.minimum(heights, ABSOLUTE_MAX_HEIGHT, out=heights)

    return HeightField(heights.astype(np.float32))


def encode_terrain_rgb(heights: np.ndarray) -> np.ndarray:
    """
    Encode elevations into Terrain-RGB pixels (alpha = 255).

    Heights are rounded to the nearest 0.1 m and clipped to the encodable range.

    Returns:
        numpy.ndarray: (height, width, 4) uint8 array
    """
    heights = np.atleast_2d(np.asarray(heights, dtype=np.float64))
    encoded = np.rint((heights - ELEVATION_OFFSET) / ELEVATION_STEP)
    encoded = np.clip(encoded, 0, 0xFFFFFF).astype(np.int64)

    pixels = np.empty(heights.shape + (4,), dtype=np.uint8)
    pixels[..., 0] = (encoded >> 16) & 0xFF
    pixels[..., 1] = (encoded >> 8) & 0xFF
    pixels[..., 2] = encoded & 0xFF
    pixels[..., 3] = 255
    return pixels
