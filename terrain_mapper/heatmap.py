"""Elevation heatmap texture: blue (low) through cyan and green to red (high)."""

import numpy as np

from .heightfield import HeightField
from .raster import RasterCanvas


def generate_heatmap(height_field: HeightField, min_elevation: float, max_elevation: float) -> RasterCanvas:
    """
    Color a height field by normalized elevation.

    Below the midpoint the color runs from blue (0, 0, 255) to cyan
    (0, 255, 255); above it from green (0, 255, 0) to red (255, 0, 0). A flat
    field renders at the midpoint.
    """
    elevation_range = max_elevation - min_elevation
    values = height_field.values.astype(np.float64)
    if elevation_range > 0:
        normalized = (values - min_elevation) / elevation_range
    else:
        normalized = np.full(values.shape, 0.5)
    t = np.clip(normalized, 0.0, 1.0)

    low = t < 0.5
    low_t = t * 2
    high_t = (t - 0.5) * 2

    red = np.where(low, 0.0, np.round(255 * high_t))
    green = np.where(low, np.round(255 * low_t), np.round(255 * (1 - high_t)))
    blue = np.where(low, 255.0, 0.0)

    pixels = np.empty(values.shape + (4,), dtype=np.uint8)
    pixels[..., 0] = red
    pixels[..., 1] = green
    pixels[..., 2] = blue
    pixels[..., 3] = 255
    return RasterCanvas(pixels)
