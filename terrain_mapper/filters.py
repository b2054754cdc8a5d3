"""
Artifact filters for decoded elevation data.

Terrain-RGB tiles occasionally contain spikes from encoding or compression
glitches. Three interchangeable strategies clean them up:

- none: keep the (already capped) decoded heights
- capping: clip everything above MAX_SPIKE_HEIGHT
- median: Hampel filter, replacing pixels that deviate from their 5x5
  neighbourhood median by more than k times the median absolute deviation
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Union

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .console import output
from .errors import ConfigError
from .heightfield import HeightField

MAX_SPIKE_HEIGHT = 3500.0  # meters
HAMPEL_THRESHOLD_MULTIPLIER = 3.0
HAMPEL_EPSILON = 0.01
HAMPEL_WINDOW = 5
HAMPEL_MIN_SAMPLES = 9


class FilterMethod(str, Enum):
    """Filter labels accepted in configuration."""
    NONE = "none"
    CAPPING = "capping"
    # Legacy label, selects the Hampel filter
    MEDIAN = "median"

    @classmethod
    def parse(cls, value: Union["FilterMethod", str]) -> "FilterMethod":
        if isinstance(value, cls):
            return value
        label = str(value).strip().lower()
        if label == "hampel":
            return cls.MEDIAN
        try:
            return cls(label)
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ConfigError(f"Unknown filter method '{value}' (expected one of: {choices}, hampel)") from None


class ArtifactFilter(ABC):
    """Strategy interface for elevation cleanup."""

    name = "base"

    @abstractmethod
    def filter(self, height_field: HeightField) -> HeightField:
        """Return a cleaned copy of the height field."""
        pass


class NoFilter(ArtifactFilter):
    name = "none"

    def filter(self, height_field: HeightField) -> HeightField:
        return height_field


class CappingFilter(ArtifactFilter):
    """Clamp every elevation to a fixed ceiling."""

    name = "capping"

    def __init__(self, max_height: float = MAX_SPIKE_HEIGHT):
        self.max_height = max_height

    def filter(self, height_field: HeightField) -> HeightField:
        capped = np.minimum(height_field.values, np.float32(self.max_height))
        clipped = int(np.count_nonzero(height_field.values > self.max_height))
        if clipped:
            output.info(f"  Capping filter clipped {clipped:,} pixels above {self.max_height:.0f}m")
        return HeightField(capped)


class HampelFilter(ArtifactFilter):
    """
    Robust spike removal using the local median and median absolute deviation.

    For each pixel the window x window neighbourhood (including the pixel, fewer
    samples at the raster edges) gives a median M and MAD = median(|x - M|). The
    pixel is a spike when |x - M| > k * (MAD + epsilon); spikes are replaced by M.
    Pixels with fewer than min_samples neighbours are left unchanged because the
    MAD is unreliable there.

    Windows are evaluated in blocks of rows to bound memory on large rasters.
    """

    name = "hampel"

    def __init__(
        self,
        k: float = HAMPEL_THRESHOLD_MULTIPLIER,
        epsilon: float = HAMPEL_EPSILON,
        window: int = HAMPEL_WINDOW,
        min_samples: int = HAMPEL_MIN_SAMPLES,
        block_rows: int = 64,
    ):
        if window < 1 or window % 2 == 0:
            raise ValueError(f"window must be a positive odd number, got {window}")
        self.k = k
        self.epsilon = epsilon
        self.window = window
        self.min_samples = min_samples
        self.block_rows = max(1, int(block_rows))
        self.last_replaced = 0

    def filter(self, height_field: HeightField) -> HeightField:
        values = height_field.values
        rows, cols = values.shape
        radius = self.window // 2

        # NaN padding marks samples outside the raster
        padded = np.pad(values.astype(np.float64), radius, mode="constant", constant_values=np.nan)
        windows = sliding_window_view(padded, (self.window, self.window))

        filtered = values.copy()
        replaced = 0

        for start in range(0, rows, self.block_rows):
            stop = min(start + self.block_rows, rows)
            block = windows[start:stop].reshape(stop - start, cols, self.window * self.window)

            counts = np.count_nonzero(~np.isnan(block), axis=-1)
            median = np.nanmedian(block, axis=-1)
            mad = np.nanmedian(np.abs(block - median[..., np.newaxis]), axis=-1)

            center = values[start:stop].astype(np.float64)
            threshold = self.k * (mad + self.epsilon)
            spikes = (counts >= self.min_samples) & (np.abs(center - median) > threshold)

            filtered[start:stop][spikes] = median[spikes]
            replaced += int(np.count_nonzero(spikes))

        self.last_replaced = replaced
        if replaced:
            output.info(f"  Hampel filter replaced {replaced:,} spike pixels")

        return HeightField(filtered)


def get_filter(method: Union[FilterMethod, str]) -> ArtifactFilter:
    """Return the filter strategy for a configuration label."""
    method = FilterMethod.parse(method)
    if method is FilterMethod.CAPPING:
        return CappingFilter()
    if method is FilterMethod.MEDIAN:
        return HampelFilter()
    return NoFilter()


def apply_terrain_filter(height_field: HeightField, method: Union[FilterMethod, str]) -> HeightField:
    """Filter a decoded height field with the strategy selected by label."""
    return get_filter(method).filter(height_field)
