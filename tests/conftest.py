"""
Pytest configuration and shared fixtures for terrain-mapper tests.
"""

import threading

import numpy as np
import pytest

from terrain_mapper.decoder import encode_terrain_rgb
from terrain_mapper.heightfield import HeightField
from terrain_mapper.raster import RasterCanvas
from terrain_mapper.tiles import BoundingBox, TileStyle


class FakeTileFetcher:
    """In-memory tile source returning PNG bytes, with optional failing tiles."""

    def __init__(self, tile_size=8, elevation=250.0, failing=(), color=(10, 200, 30, 255)):
        self.tile_size = tile_size
        self.elevation = elevation
        self.failing = set(failing)
        self.color = color
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, tile, style):
        with self._lock:
            self.calls.append((tile, TileStyle(style)))
        if (tile.x, tile.y) in self.failing:
            raise ConnectionError(f"simulated failure for {tile}")

        size = self.tile_size
        if TileStyle(style) is TileStyle.TERRAIN_RGB:
            heights = np.full((size, size), self.elevation)
            pixels = encode_terrain_rgb(heights)
        else:
            pixels = np.empty((size, size, 4), dtype=np.uint8)
            pixels[...] = self.color
        return RasterCanvas(pixels).to_png_bytes()


@pytest.fixture
def fake_fetcher():
    """Factory fixture for fake tile sources."""
    def _create(**kwargs):
        return FakeTileFetcher(**kwargs)
    return _create


@pytest.fixture
def small_bbox():
    """A small bounding box around Boulder, CO."""
    return BoundingBox(-105.30, 39.95, -105.20, 40.05)


@pytest.fixture
def flat_field():
    """10x10 height field at a constant 100 m."""
    return HeightField(np.full((10, 10), 100.0, dtype=np.float32))


@pytest.fixture
def spike_field():
    """5x5 field of 100 m with a 5000 m spike in the centre."""
    values = np.full((5, 5), 100.0, dtype=np.float32)
    values[2, 2] = 5000.0
    return HeightField(values)
